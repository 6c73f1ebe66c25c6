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
import contextlib
from typing import Callable

from ..core.errors import (
  NameCollision,
  PeerNotFound,
  RuntimeDeregisterFailed,
  AdapterUnavailable,
)
from ..core.log import Logger
from ..core.render import Templates
from ..core.wg import WireGuardRuntime, genkeypair
from ..registry.address_pool import AddressPool
from ..registry.peer_record import PeerRecord, validate_name
from ..registry.registry import PeerRegistry
from .checkpoint import PendingDeregistrations
from .lock import AgentLock

log = Logger.sublogger("lifecycle")


class ServerIdentity:
  """What a client profile needs to know about the server."""
  def __init__(self,
      public_key: str,
      endpoint: str,
      port: int,
      dns: str,
      mtu: int,
      allowed_ips: str,
      keepalive: int) -> None:
    self.public_key = public_key
    self.endpoint = endpoint
    self.port = port
    self.dns = dns
    self.mtu = mtu
    self.allowed_ips = allowed_ips
    self.keepalive = keepalive


class ClientLifecycleManager:
  """
  Add and remove peers, keeping the registry and the tunnel runtime in
  agreement. Registering a new peer with the runtime is the commit point
  of ``add_peer()``; removal always cleans the registry, even if the
  runtime cannot be updated.
  """
  PROFILE_TEMPLATE = "client.conf"

  def __init__(self,
      registry: PeerRegistry,
      runtime: WireGuardRuntime,
      pool: AddressPool,
      server: Callable[[], ServerIdentity],
      pending: PendingDeregistrations | None = None,
      lock: AgentLock | None = None,
      keygen: Callable[[], tuple[str, str]] = genkeypair) -> None:
    self.registry = registry
    self.runtime = runtime
    self.pool = pool
    self.server = server
    self.pending = pending
    self.lock = lock
    self.keygen = keygen


  def render_profile(self, record: PeerRecord, private_key: str, server: ServerIdentity) -> str:
    return Templates.render(self.PROFILE_TEMPLATE, {
      "address": record.address,
      "prefixlen": self.pool.network.prefixlen,
      "private_key": private_key,
      "server": server,
    })


  def add_peer(self, name: str) -> PeerRecord:
    validate_name(name)
    with (self.lock or contextlib.nullcontext()):
      if self.registry.get(name) is not None:
        raise NameCollision(f"peer already exists: {name}")
      address = self.pool.allocate(r.address for r in self.registry.list())
      server = self.server()
      private_key, public_key = self.keygen()
      record = PeerRecord(name=name, address=address, public_key=public_key)
      profile = self.render_profile(record, private_key, server)

      self.runtime.register_peer(public_key, address)
      try:
        self.registry.put(record, private_key, profile)
      except BaseException:
        log.error("failed to store peer {}, rolling back registration", name)
        self._deregister(record)
        raise
      log.activity("added peer {} [{}]", name, address)
      return record


  def remove_peer(self, name: str) -> PeerRecord:
    validate_name(name)
    with (self.lock or contextlib.nullcontext()):
      record = self.registry.get(name)
      if record is None:
        raise PeerNotFound(f"peer not found: {name}")
      self._deregister(record)
      self.registry.delete(name)
      log.activity("removed peer {} [{}]", name, record.address)
      return record


  def _deregister(self, record: PeerRecord) -> None:
    try:
      self.runtime.deregister_peer(record.public_key)
    except (RuntimeDeregisterFailed, AdapterUnavailable) as e:
      log.warning("failed to deregister peer {} from the runtime: {}", record.name, e)
      if self.pending is not None:
        self.pending.add(record.public_key)
