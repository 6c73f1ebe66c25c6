###############################################################################
# Copyright 2020-2024 Andrea Sorbini
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
###############################################################################
import ipaddress
from typing import Iterable

from ..core.errors import AddressPoolExhausted


class AddressPool:
  """
  The fixed set of tunnel addresses that can be assigned to peers:
  every host address of ``network``, minus the addresses in ``reserved``
  (typically the server's own tunnel address). The network and
  broadcast addresses are never part of the pool.
  """
  def __init__(self,
      network: ipaddress.IPv4Network | str,
      reserved: Iterable[ipaddress.IPv4Address | str] = ()) -> None:
    self.network = ipaddress.ip_network(network)
    self.reserved = frozenset(map(ipaddress.ip_address, reserved))


  def __contains__(self, address: ipaddress.IPv4Address | str) -> bool:
    address = ipaddress.ip_address(address)
    return (
      address in self.network
      and address != self.network.network_address
      and address != self.network.broadcast_address
      and address not in self.reserved)


  def allocate(self, used: Iterable[ipaddress.IPv4Address | str]) -> ipaddress.IPv4Address:
    used = set(map(ipaddress.ip_address, used))
    for address in self.network.hosts():
      if address in self.reserved or address in used:
        continue
      return address
    raise AddressPoolExhausted(f"no free address left in {self.network}")
