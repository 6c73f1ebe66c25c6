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
from pathlib import Path
from typing import Iterable

import yaml

from ..core.data import yaml_dump_atomic
from ..core.errors import CorruptCheckpoint
from ..core.log import Logger

log = Logger.sublogger("checkpoint")


class CheckpointEntry:
  """
  The last sample recorded for one peer: cumulative counters, when
  they were sampled, and the classification at that time.

  ``online`` is None when no classification was ever recorded for the
  peer, so there is no state to transition from.
  """
  def __init__(self,
      rx: int = 0,
      tx: int = 0,
      sample_epoch: int = 0,
      online: bool | None = None,
      endpoint: str = "") -> None:
    self.rx = int(rx)
    self.tx = int(tx)
    self.sample_epoch = int(sample_epoch)
    self.online = online
    self.endpoint = endpoint or ""


  def __eq__(self, other: object) -> bool:
    if not isinstance(other, CheckpointEntry):
      return False
    return self.serialize() == other.serialize()


  def __repr__(self) -> str:
    return f"{self.__class__.__name__}({self.serialize()})"


  def serialize(self) -> dict:
    return {
      "rx": self.rx,
      "tx": self.tx,
      "sample_epoch": self.sample_epoch,
      "online": self.online,
      "endpoint": self.endpoint,
    }


  @staticmethod
  def deserialize(serialized: dict) -> "CheckpointEntry":
    online = serialized.get("online")
    if online is not None and not isinstance(online, bool):
      raise ValueError(f"invalid online flag: {online!r}")
    return CheckpointEntry(
      rx=serialized.get("rx", 0),
      tx=serialized.get("tx", 0),
      sample_epoch=serialized.get("sample_epoch", 0),
      online=online,
      endpoint=serialized.get("endpoint") or "")


class Checkpoint:
  def __init__(self,
      timestamp: int = 0,
      peers: dict[str, CheckpointEntry] | None = None) -> None:
    self.timestamp = int(timestamp)
    self.peers = dict(peers or {})


  def __eq__(self, other: object) -> bool:
    if not isinstance(other, Checkpoint):
      return False
    return self.timestamp == other.timestamp and self.peers == other.peers


  def __repr__(self) -> str:
    return f"{self.__class__.__name__}({self.timestamp}, {len(self.peers)} peers)"


  def serialize(self) -> dict:
    return {
      "timestamp": self.timestamp,
      "peers": {
        pubkey: entry.serialize()
          for pubkey, entry in self.peers.items()
      },
    }


  @staticmethod
  def deserialize(serialized: object) -> "Checkpoint":
    if not isinstance(serialized, dict):
      raise CorruptCheckpoint("checkpoint is not a mapping")
    peers = serialized.get("peers") or {}
    if not isinstance(peers, dict):
      raise CorruptCheckpoint("checkpoint peers are not a mapping")
    try:
      return Checkpoint(
        timestamp=serialized.get("timestamp") or 0,
        peers={
          str(pubkey): CheckpointEntry.deserialize(entry)
            for pubkey, entry in peers.items()
        })
    except (AttributeError, TypeError, ValueError) as e:
      raise CorruptCheckpoint(f"invalid checkpoint entry: {e}") from e


class StateStore:
  """
  Durable copy of the previous tick's checkpoint.

  A missing or unreadable checkpoint is a cold start, never an error.
  """
  def __init__(self, path: Path) -> None:
    self.path = Path(path)


  def load(self) -> Checkpoint:
    if not self.path.exists():
      log.debug("no checkpoint found, cold start: {}", self.path)
      return Checkpoint()
    try:
      serialized = yaml.safe_load(self.path.read_text())
      return Checkpoint.deserialize(serialized)
    except (OSError, UnicodeDecodeError, yaml.YAMLError, CorruptCheckpoint) as e:
      log.warning("discarding unreadable checkpoint {}: {}", self.path, e)
      return Checkpoint()


  def save(self, checkpoint: Checkpoint) -> None:
    yaml_dump_atomic(self.path, checkpoint.serialize(), mode=0o600)
    log.debug("saved checkpoint with {} peers: {}", len(checkpoint.peers), self.path)


class PendingDeregistrations:
  """
  Public keys of removed peers that the tunnel runtime failed to
  forget. They are retried until the runtime no longer reports them.
  """
  def __init__(self, path: Path) -> None:
    self.path = Path(path)


  def load(self) -> set[str]:
    if not self.path.exists():
      return set()
    try:
      pending = yaml.safe_load(self.path.read_text()) or []
    except (OSError, yaml.YAMLError) as e:
      log.warning("discarding unreadable pending deregistrations {}: {}", self.path, e)
      return set()
    if not isinstance(pending, list):
      log.warning("discarding invalid pending deregistrations: {}", self.path)
      return set()
    return set(map(str, pending))


  def save(self, pending: Iterable[str]) -> None:
    pending = sorted(pending)
    if not pending:
      self.path.unlink(missing_ok=True)
      return
    yaml_dump_atomic(self.path, pending, mode=0o600)


  def add(self, public_key: str) -> None:
    pending = self.load()
    pending.add(public_key)
    self.save(pending)
    log.warning("peer marked for pending deregistration: {}", public_key)
