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
from enum import Enum
from pathlib import Path
from typing import Iterable, Mapping

from ..core.log import Logger
from ..core.render import format_hash
from ..core.time import Timestamp
from .checkpoint import Checkpoint

log = Logger.sublogger("events")


class PeerEventKind(Enum):
  ONLINE = "ONLINE"
  OFFLINE = "OFFLINE"
  ENDPOINT_CHANGE = "ENDPOINT_CHANGE"


class PeerEvent:
  def __init__(self,
      kind: PeerEventKind,
      name: str,
      public_key: str,
      timestamp: int,
      endpoint: str = "",
      previous_endpoint: str = "") -> None:
    self.kind = kind
    self.name = name
    self.public_key = public_key
    self.timestamp = int(timestamp)
    self.endpoint = endpoint
    self.previous_endpoint = previous_endpoint


  def __eq__(self, other: object) -> bool:
    if not isinstance(other, PeerEvent):
      return False
    return (self.kind == other.kind
      and self.name == other.name
      and self.public_key == other.public_key
      and self.timestamp == other.timestamp
      and self.endpoint == other.endpoint
      and self.previous_endpoint == other.previous_endpoint)


  def __repr__(self) -> str:
    return f"{self.__class__.__name__}({self.kind.name}, {self.name})"


  def __str__(self) -> str:
    return self.format()


  def format(self) -> str:
    ts = Timestamp.unix(self.timestamp).format()
    prefix = f"[{ts}] client={self.name} pub={format_hash(self.public_key)}"
    if self.kind == PeerEventKind.ENDPOINT_CHANGE:
      return f"{prefix} endpoint_change={self.previous_endpoint or '(none)'}->{self.endpoint or '(none)'}"
    return f"{prefix} status={self.kind.value} endpoint={self.endpoint or '(none)'}"


def detect_events(
    previous: Checkpoint,
    current: Checkpoint,
    names: Mapping[str, str],
    now: int) -> list[PeerEvent]:
  """
  Compare two checkpoints and return the transitions of every peer
  recorded in both. A peer whose previous entry carries no classification
  produces no event.
  """
  events = []
  for pubkey, entry in current.peers.items():
    prev_entry = previous.peers.get(pubkey)
    if prev_entry is None or prev_entry.online is None:
      continue
    name = names.get(pubkey, pubkey)
    if prev_entry.online != entry.online:
      events.append(PeerEvent(
        kind=PeerEventKind.ONLINE if entry.online else PeerEventKind.OFFLINE,
        name=name,
        public_key=pubkey,
        timestamp=now,
        endpoint=entry.endpoint))
    elif entry.online and prev_entry.endpoint != entry.endpoint:
      events.append(PeerEvent(
        kind=PeerEventKind.ENDPOINT_CHANGE,
        name=name,
        public_key=pubkey,
        timestamp=now,
        endpoint=entry.endpoint,
        previous_endpoint=prev_entry.endpoint))
  return events


class EventSink:
  """Append-only text log of peer transitions, one line per event."""

  def __init__(self, path: Path) -> None:
    self.path = Path(path)


  def append(self, events: Iterable[PeerEvent]) -> bool:
    lines = [event.format() + "\n" for event in events]
    if not lines:
      return True
    try:
      self.path.parent.mkdir(parents=True, exist_ok=True)
      with self.path.open("a") as output:
        output.writelines(lines)
    except OSError as e:
      log.warning("failed to write {} events to {}: {}", len(lines), self.path, e)
      return False
    for line in lines:
      log.activity(line.rstrip())
    return True


  def tail(self, count: int = 20) -> list[str]:
    if not self.path.exists():
      return []
    lines = self.path.read_text().splitlines()
    if count <= 0:
      return lines
    return lines[-count:]
