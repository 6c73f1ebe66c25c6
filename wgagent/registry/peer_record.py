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
import re

from ..core.errors import InvalidName


VALID_NAME = re.compile(r"^[A-Za-z0-9_-]+$")


def validate_name(name: str) -> None:
  if not name:
    raise InvalidName("peer name cannot be empty")
  if not VALID_NAME.fullmatch(name):
    raise InvalidName(f"peer name contains invalid characters: {name!r}")


class PeerRecord:
  """A configured tunnel peer, as stored in the peer registry."""

  def __init__(self,
      name: str,
      address: ipaddress.IPv4Address | str,
      public_key: str) -> None:
    self.name = name
    self.address = ipaddress.ip_address(address)
    self.public_key = public_key


  def __eq__(self, other: object) -> bool:
    if not isinstance(other, PeerRecord):
      return False
    return (self.name == other.name
      and self.address == other.address
      and self.public_key == other.public_key)


  def __hash__(self) -> int:
    return hash(self.name)


  def __str__(self) -> str:
    return self.name


  def __repr__(self) -> str:
    return f"{self.__class__.__name__}({self.name}, {self.address})"


  def serialize(self) -> dict:
    return {
      "name": self.name,
      "address": str(self.address),
      "public_key": self.public_key,
    }


  @staticmethod
  def deserialize(serialized: dict) -> "PeerRecord":
    return PeerRecord(
      name=serialized["name"],
      address=serialized["address"],
      public_key=serialized["public_key"])
