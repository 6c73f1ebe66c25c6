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
import stat

import pytest

from wgagent.core.errors import (
  AddressPoolExhausted,
  ConfigError,
  InvalidName,
  NameCollision,
  PeerNotFound,
  WireGuardError,
)
from wgagent.registry.address_pool import AddressPool
from wgagent.agent.lifecycle import ClientLifecycleManager


def _mode(path) -> int:
  return stat.S_IMODE(path.stat().st_mode)


def test_add_peer(lifecycle, registry, runtime):
  record = lifecycle.add_peer("alice")
  assert record.name == "alice"
  assert record.address == ipaddress.ip_address("10.10.10.2")
  assert record.public_key == "public-key-0001="
  assert registry.get("alice") == record
  assert record.public_key in runtime.samples

  profile = registry.profile("alice")
  assert "Address = 10.10.10.2/24" in profile
  assert "PrivateKey = private-key-0001=" in profile
  assert "DNS = 1.1.1.1, 8.8.8.8" in profile
  assert "MTU = 1280" in profile
  assert "PublicKey = server-public-key=" in profile
  assert "Endpoint = vpn.example.com:51820" in profile
  assert "AllowedIPs = 0.0.0.0/0, 10.10.10.0/24" in profile
  assert "PersistentKeepalive = 25" in profile

  bundle = registry.root / "alice"
  assert _mode(bundle / "private.key") == 0o600
  assert _mode(bundle / "client.conf") == 0o600
  assert (bundle / "public.key").read_text().strip() == record.public_key


def test_add_peers_allocates_lowest_free_address(lifecycle):
  addresses = [str(lifecycle.add_peer(name).address) for name in ("a", "b", "c")]
  assert addresses == ["10.10.10.2", "10.10.10.3", "10.10.10.4"]
  lifecycle.remove_peer("a")
  assert str(lifecycle.add_peer("d").address) == "10.10.10.2"


def test_add_then_remove_restores_state(lifecycle, registry, runtime):
  lifecycle.add_peer("bob")
  before_records = registry.list()
  before_runtime = dict(runtime.samples)

  lifecycle.add_peer("alice")
  lifecycle.remove_peer("alice")

  assert registry.list() == before_records
  assert runtime.samples == before_runtime
  assert sorted(p.name for p in registry.root.iterdir()) == ["bob"]


@pytest.mark.parametrize("name", ["", "bad name", "../etc", "alice!", "alice\n", "é"])
def test_add_invalid_name(name, lifecycle, registry, runtime):
  with pytest.raises(InvalidName):
    lifecycle.add_peer(name)
  assert registry.list() == []
  assert runtime.samples == {}


def test_add_name_collision(lifecycle, registry, runtime):
  first = lifecycle.add_peer("alice")
  with pytest.raises(NameCollision):
    lifecycle.add_peer("alice")
  assert registry.list() == [first]
  assert list(runtime.samples) == [first.public_key]


def test_add_pool_exhausted(registry, runtime, server, keygen):
  manager = ClientLifecycleManager(
    registry=registry,
    runtime=runtime,
    pool=AddressPool("10.0.0.0/30", reserved=["10.0.0.1"]),
    server=lambda: server,
    keygen=keygen)
  only = manager.add_peer("only")
  assert str(only.address) == "10.0.0.2"
  with pytest.raises(AddressPoolExhausted):
    manager.add_peer("another")
  assert registry.list() == [only]
  assert list(runtime.samples) == [only.public_key]


def test_add_without_server_identity(registry, runtime, pool, keygen):
  def _no_server():
    raise ConfigError("no public endpoint configured")

  manager = ClientLifecycleManager(
    registry=registry, runtime=runtime, pool=pool, server=_no_server, keygen=keygen)
  with pytest.raises(ConfigError):
    manager.add_peer("alice")
  assert registry.list() == []
  assert runtime.samples == {}


def test_add_register_failure_leaves_no_record(lifecycle, registry, runtime):
  runtime.fail_register = True
  with pytest.raises(WireGuardError):
    lifecycle.add_peer("alice")
  assert registry.list() == []
  assert registry.get("alice") is None


def test_add_store_failure_rolls_back_registration(lifecycle, registry, runtime, monkeypatch):
  def _fail_put(record, private_key, profile):
    raise OSError("disk full")

  monkeypatch.setattr(registry, "put", _fail_put)
  with pytest.raises(OSError):
    lifecycle.add_peer("alice")
  assert runtime.samples == {}
  assert runtime.deregister_calls == ["public-key-0001="]
  assert registry.get("alice") is None


def test_remove_unknown_peer(lifecycle, runtime):
  with pytest.raises(PeerNotFound):
    lifecycle.remove_peer("nobody")
  assert runtime.deregister_calls == []


def test_remove_tolerates_runtime_failure(lifecycle, registry, runtime, pending):
  record = lifecycle.add_peer("alice")
  runtime.fail_deregister = True
  removed = lifecycle.remove_peer("alice")
  assert removed == record
  assert registry.get("alice") is None
  assert pending.load() == {record.public_key}


@pytest.mark.parametrize("name", ["..", "../clients/alice", "alice/"])
def test_remove_invalid_name(name, lifecycle, registry, runtime):
  record = lifecycle.add_peer("alice")
  with pytest.raises(InvalidName):
    lifecycle.remove_peer(name)
  assert registry.list() == [record]
  assert runtime.deregister_calls == []
