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
from functools import cached_property
from pathlib import Path

from ..core.errors import ConfigError
from ..core.wg import WireGuardRuntime
from ..registry.address_pool import AddressPool
from ..registry.registry import FilesystemPeerRegistry
from .checkpoint import StateStore, PendingDeregistrations
from .config import AgentConfig
from .events import EventSink
from .lifecycle import ClientLifecycleManager, ServerIdentity
from .lock import AgentLock
from .state import StateEngine


class Agent:
  def __init__(self, config: AgentConfig) -> None:
    self.config = config


  @staticmethod
  def open(root: Path | None = None) -> "Agent":
    return Agent(AgentConfig.load(root))


  @cached_property
  def registry(self) -> FilesystemPeerRegistry:
    return FilesystemPeerRegistry(self.config.clients_dir)


  @cached_property
  def runtime(self) -> WireGuardRuntime:
    return WireGuardRuntime(
      self.config.interface,
      timeout=self.config.runtime_timeout,
      save_config=self.config.save_runtime_config)


  @cached_property
  def pool(self) -> AddressPool:
    return AddressPool(self.config.network, reserved=[self.config.server_address])


  @cached_property
  def store(self) -> StateStore:
    return StateStore(self.config.checkpoint_file)


  @cached_property
  def sink(self) -> EventSink:
    return EventSink(self.config.event_log)


  @cached_property
  def pending(self) -> PendingDeregistrations:
    return PendingDeregistrations(self.config.pending_file)


  @cached_property
  def lock(self) -> AgentLock:
    return AgentLock(self.config.lock_file, timeout=self.config.lock_timeout)


  @cached_property
  def engine(self) -> StateEngine:
    return StateEngine(
      registry=self.registry,
      runtime=self.runtime,
      store=self.store,
      sink=self.sink,
      pending=self.pending,
      lock=self.lock)


  @cached_property
  def lifecycle(self) -> ClientLifecycleManager:
    return ClientLifecycleManager(
      registry=self.registry,
      runtime=self.runtime,
      pool=self.pool,
      server=self.server_identity,
      pending=self.pending,
      lock=self.lock)


  def server_identity(self) -> ServerIdentity:
    if not self.config.endpoint:
      raise ConfigError("no public endpoint configured for client profiles")
    return ServerIdentity(
      public_key=self.config.server_public_key,
      endpoint=self.config.endpoint,
      port=self.config.listen_port,
      dns=self.config.dns,
      mtu=self.config.mtu,
      allowed_ips=self.config.allowed_ips,
      keepalive=self.config.keepalive)
