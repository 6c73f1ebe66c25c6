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
import itertools
from pathlib import Path
from typing import Callable

import pytest

from wgagent.core.errors import AdapterUnavailable, WireGuardError, RuntimeDeregisterFailed
from wgagent.core.wg import RuntimeSample
from wgagent.registry.address_pool import AddressPool
from wgagent.registry.registry import FilesystemPeerRegistry
from wgagent.agent.checkpoint import StateStore, PendingDeregistrations
from wgagent.agent.events import EventSink
from wgagent.agent.lifecycle import ClientLifecycleManager, ServerIdentity
from wgagent.agent.lock import AgentLock
from wgagent.agent.state import StateEngine


class FakeRuntime:
  """In-memory stand-in for a WireGuard interface."""

  def __init__(self) -> None:
    self.samples: dict[str, RuntimeSample] = {}
    self.available = True
    self.fail_register = False
    self.fail_deregister = False
    self.deregister_calls: list[str] = []


  def sample(self, public_key: str, **kwargs) -> None:
    self.samples[public_key] = RuntimeSample(public_key, **kwargs)


  def list_peers(self) -> dict[str, RuntimeSample]:
    if not self.available:
      raise AdapterUnavailable("interface is down")
    return dict(self.samples)


  def show(self) -> str:
    if not self.available:
      raise AdapterUnavailable("interface is down")
    return "\n".join(f"peer: {k}" for k in sorted(self.samples))


  def register_peer(self, public_key: str, allowed_address: ipaddress.IPv4Address | str) -> None:
    if self.fail_register:
      raise WireGuardError("failed to register peer")
    self.samples[public_key] = RuntimeSample(public_key)


  def deregister_peer(self, public_key: str) -> None:
    self.deregister_calls.append(public_key)
    if self.fail_deregister:
      raise RuntimeDeregisterFailed("failed to deregister peer")
    self.samples.pop(public_key, None)


@pytest.fixture
def runtime() -> FakeRuntime:
  return FakeRuntime()


@pytest.fixture
def keygen() -> Callable[[], tuple[str, str]]:
  counter = itertools.count(1)

  def _genkeypair() -> tuple[str, str]:
    i = next(counter)
    return (f"private-key-{i:04d}=", f"public-key-{i:04d}=")

  return _genkeypair


@pytest.fixture
def registry(tmp_path: Path) -> FilesystemPeerRegistry:
  return FilesystemPeerRegistry(tmp_path / "clients")


@pytest.fixture
def pool() -> AddressPool:
  return AddressPool("10.10.10.0/24", reserved=["10.10.10.1"])


@pytest.fixture
def store(tmp_path: Path) -> StateStore:
  return StateStore(tmp_path / "state" / "checkpoint.yml")


@pytest.fixture
def sink(tmp_path: Path) -> EventSink:
  return EventSink(tmp_path / "state" / "events.log")


@pytest.fixture
def pending(tmp_path: Path) -> PendingDeregistrations:
  return PendingDeregistrations(tmp_path / "state" / "pending-deregistration.yml")


@pytest.fixture
def lock(tmp_path: Path) -> AgentLock:
  return AgentLock(tmp_path / "state" / "wgagent.pid", timeout=5)


@pytest.fixture
def server() -> ServerIdentity:
  return ServerIdentity(
    public_key="server-public-key=",
    endpoint="vpn.example.com",
    port=51820,
    dns="1.1.1.1, 8.8.8.8",
    mtu=1280,
    allowed_ips="0.0.0.0/0, 10.10.10.0/24",
    keepalive=25)


@pytest.fixture
def lifecycle(
    registry: FilesystemPeerRegistry,
    runtime: FakeRuntime,
    pool: AddressPool,
    server: ServerIdentity,
    pending: PendingDeregistrations,
    lock: AgentLock,
    keygen: Callable[[], tuple[str, str]]) -> ClientLifecycleManager:
  return ClientLifecycleManager(
    registry=registry,
    runtime=runtime,
    pool=pool,
    server=lambda: server,
    pending=pending,
    lock=lock,
    keygen=keygen)


@pytest.fixture
def engine(
    registry: FilesystemPeerRegistry,
    runtime: FakeRuntime,
    store: StateStore,
    sink: EventSink,
    pending: PendingDeregistrations,
    lock: AgentLock) -> StateEngine:
  return StateEngine(
    registry=registry,
    runtime=runtime,
    store=store,
    sink=sink,
    pending=pending,
    lock=lock)
