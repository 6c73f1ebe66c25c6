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
import pytest

from wgagent.core.errors import InvalidName, NameCollision, PeerNotFound
from wgagent.registry.peer_record import PeerRecord


ALICE = PeerRecord("alice", "10.10.10.2", "alice-public-key=")
BOB = PeerRecord("bob", "10.10.10.3", "bob-public-key=")


def test_put_get_list(registry):
  assert registry.list() == []
  assert registry.get("alice") is None
  registry.put(BOB, "bob-private-key=", "[Interface]\n")
  registry.put(ALICE, "alice-private-key=", "[Interface]\n")
  assert registry.get("alice") == ALICE
  assert registry.list() == [ALICE, BOB]
  assert "alice" in registry
  assert "carol" not in registry
  assert len(registry) == 2
  assert registry.profile("alice") == "[Interface]\n"
  assert (registry.root / "alice" / "private.key").read_text() == "alice-private-key=\n"


def test_put_collision(registry):
  registry.put(ALICE, "alice-private-key=", "first\n")
  with pytest.raises(NameCollision):
    registry.put(PeerRecord("alice", "10.10.10.9", "other-key="), "other-private=", "second\n")
  assert registry.get("alice") == ALICE
  assert registry.profile("alice") == "first\n"
  assert [p.name for p in registry.root.iterdir()] == ["alice"]


def test_delete(registry):
  registry.put(ALICE, "alice-private-key=", "[Interface]\n")
  registry.put(BOB, "bob-private-key=", "[Interface]\n")
  assert registry.delete("alice") == ALICE
  assert registry.list() == [BOB]
  assert [p.name for p in registry.root.iterdir()] == ["bob"]
  with pytest.raises(PeerNotFound):
    registry.delete("alice")
  with pytest.raises(PeerNotFound):
    registry.profile("alice")


def test_incomplete_bundles_are_ignored(registry):
  registry.put(ALICE, "alice-private-key=", "[Interface]\n")
  # Leftover staging directory from an interrupted write
  (registry.root / ".bob-x1y2z3").mkdir()
  (registry.root / ".bob-x1y2z3" / "peer.yml").write_text(
    "name: bob\naddress: 10.10.10.3\npublic_key: bob-public-key=\n")
  # Bundle without any record
  (registry.root / "carol").mkdir()
  # Bundle with an invalid record
  (registry.root / "dave").mkdir()
  (registry.root / "dave" / "peer.yml").write_text("name: dave\n")
  assert registry.list() == [ALICE]
  assert registry.get("carol") is None
  assert registry.get("dave") is None


def test_legacy_bundle(registry):
  bundle = registry.root / "legacy"
  bundle.mkdir(parents=True)
  (bundle / "client_public.key").write_text("legacy-public-key=\n")
  (bundle / "client.conf").write_text(
    "[Interface]\nPrivateKey = legacy-private-key=\nAddress = 10.10.10.7/24\nDNS = 1.1.1.1\n")
  record = registry.get("legacy")
  assert record == PeerRecord("legacy", "10.10.10.7", "legacy-public-key=")
  assert registry.list() == [record]
  assert registry.delete("legacy") == record
  assert not bundle.exists()


def test_peer_record_serialization():
  serialized = ALICE.serialize()
  assert serialized == {
    "name": "alice",
    "address": "10.10.10.2",
    "public_key": "alice-public-key=",
  }
  assert PeerRecord.deserialize(serialized) == ALICE


@pytest.mark.parametrize("name", ["..", "../outside", "a/b", ".hidden", ""])
def test_names_outside_the_registry_are_rejected(name, registry, tmp_path):
  outside = tmp_path / "outside"
  outside.mkdir()
  (outside / "client.conf").write_text("[Interface]\nAddress = 10.10.10.9/24\n")
  (outside / "client_public.key").write_text("outside-public-key=\n")
  registry.put(ALICE, "alice-private-key=", "[Interface]\n")
  with pytest.raises(InvalidName):
    registry.get(name)
  with pytest.raises(InvalidName):
    registry.profile(name)
  with pytest.raises(InvalidName):
    registry.delete(name)
  assert outside.is_dir()
  assert registry.list() == [ALICE]


def test_invalid_directory_names_are_not_listed(registry):
  registry.put(ALICE, "alice-private-key=", "[Interface]\n")
  bundle = registry.root / "bad name"
  bundle.mkdir()
  (bundle / "peer.yml").write_text("name: bad name\naddress: 10.10.10.9\npublic_key: bad-public-key=\n")
  assert registry.list() == [ALICE]
