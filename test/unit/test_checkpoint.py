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
import stat

import pytest
import yaml

from wgagent.core.errors import CorruptCheckpoint
from wgagent.agent.checkpoint import Checkpoint, CheckpointEntry


def test_save_and_load(store):
  checkpoint = Checkpoint(timestamp=1000, peers={
    "alice-public-key=": CheckpointEntry(rx=10, tx=20, sample_epoch=1000, online=True, endpoint="1.2.3.4:5000"),
    "bob-public-key=": CheckpointEntry(sample_epoch=1000, online=False),
  })
  store.save(checkpoint)
  assert store.load() == checkpoint
  assert stat.S_IMODE(store.path.stat().st_mode) == 0o600
  # No temporary files are left behind
  assert [p.name for p in store.path.parent.iterdir()] == [store.path.name]


def test_save_replaces_previous(store):
  store.save(Checkpoint(timestamp=1, peers={"k": CheckpointEntry(rx=1, sample_epoch=1, online=True)}))
  store.save(Checkpoint(timestamp=2))
  assert store.load() == Checkpoint(timestamp=2)


def test_load_missing(store):
  assert not store.path.exists()
  assert store.load() == Checkpoint()


def test_load_corrupt(store):
  store.path.parent.mkdir(parents=True)
  store.path.write_text("timestamp: [")
  assert store.load() == Checkpoint()


@pytest.mark.parametrize("serialized", [
  None,
  ["a", "list"],
  {"peers": ["a", "list"]},
  {"peers": {"k": "not-a-mapping"}},
  {"peers": {"k": {"rx": "many"}}},
  {"peers": {"k": {"online": "yes"}}},
])
def test_deserialize_invalid(serialized):
  with pytest.raises(CorruptCheckpoint):
    Checkpoint.deserialize(serialized)


def test_entry_without_classification():
  entry = CheckpointEntry.deserialize({"rx": 5, "tx": 6, "sample_epoch": 7})
  assert entry.online is None
  assert entry.endpoint == ""


def test_serialized_layout(store):
  store.save(Checkpoint(timestamp=5, peers={"k": CheckpointEntry(rx=1, tx=2, sample_epoch=5, online=True)}))
  assert yaml.safe_load(store.path.read_text()) == {
    "timestamp": 5,
    "peers": {
      "k": {
        "rx": 1,
        "tx": 2,
        "sample_epoch": 5,
        "online": True,
        "endpoint": "",
      },
    },
  }


def test_pending_deregistrations(pending):
  assert pending.load() == set()
  pending.add("k1")
  pending.add("k2")
  pending.add("k1")
  assert pending.load() == {"k1", "k2"}
  assert yaml.safe_load(pending.path.read_text()) == ["k1", "k2"]
  pending.save([])
  assert not pending.path.exists()
  assert pending.load() == set()


def test_pending_deregistrations_invalid(pending):
  pending.path.parent.mkdir(parents=True)
  pending.path.write_text("k1: k2\n")
  assert pending.load() == set()
