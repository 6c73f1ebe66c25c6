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
import ipaddress
from typing import Iterable, Mapping

from ..core.errors import AdapterUnavailable, RuntimeDeregisterFailed
from ..core.log import Logger
from ..core.time import Timestamp
from ..core.wg import RuntimeSample, WireGuardRuntime
from ..registry.peer_record import PeerRecord
from ..registry.registry import PeerRegistry
from .checkpoint import Checkpoint, CheckpointEntry, StateStore, PendingDeregistrations
from .events import EventSink, PeerEvent, detect_events
from .lock import AgentLock

log = Logger.sublogger("state")


# Maximum age (in seconds) of a handshake for a peer to be considered online
STALENESS_THRESHOLD = 180


class PeerState:
  def __init__(self,
      name: str,
      address: ipaddress.IPv4Address,
      public_key: str,
      endpoint: str = "",
      online: bool = False,
      seconds_since_handshake: int | None = None,
      rx_rate: float = 0,
      tx_rate: float = 0,
      rx_bytes: int = 0,
      tx_bytes: int = 0) -> None:
    self.name = name
    self.address = address
    self.public_key = public_key
    self.endpoint = endpoint
    self.online = online
    self.seconds_since_handshake = seconds_since_handshake
    self.rx_rate = rx_rate
    self.tx_rate = tx_rate
    self.rx_bytes = rx_bytes
    self.tx_bytes = tx_bytes


  def __repr__(self) -> str:
    return f"{self.__class__.__name__}({self.name}, {'online' if self.online else 'offline'})"


def classify_online(last_handshake: int, now: int, threshold: int = STALENESS_THRESHOLD) -> bool:
  return last_handshake != 0 and now - last_handshake <= threshold


def compute_rates(
    sample: RuntimeSample,
    previous: CheckpointEntry | None,
    now: int) -> tuple[float, float]:
  """
  Return the (rx, tx) throughput in bytes per second since the previous
  sample. A missing baseline, a counter regression (runtime restart) or a
  non-increasing clock all yield zero.
  """
  if previous is None:
    return (0, 0)
  dt = now - previous.sample_epoch
  drx = sample.rx_bytes - previous.rx
  dtx = sample.tx_bytes - previous.tx
  if dt <= 0 or drx < 0 or dtx < 0:
    return (0, 0)
  return (drx / dt, dtx / dt)


def compute_tick(
    records: Iterable[PeerRecord],
    samples: Mapping[str, RuntimeSample],
    previous: Checkpoint,
    now: int) -> tuple[dict[str, PeerState], Checkpoint]:
  """
  Join the registry with the runtime's samples and derive every peer's
  state, together with the checkpoint that replaces ``previous``.
  """
  states = {}
  checkpoint = Checkpoint(timestamp=now)
  for record in records:
    sample = samples.get(record.public_key)
    if sample is None:
      states[record.name] = PeerState(
        name=record.name,
        address=record.address,
        public_key=record.public_key)
      checkpoint.peers[record.public_key] = CheckpointEntry(
        sample_epoch=now,
        online=False)
      continue

    online = classify_online(sample.last_handshake, now)
    rx_rate, tx_rate = compute_rates(sample, previous.peers.get(record.public_key), now)
    states[record.name] = PeerState(
      name=record.name,
      address=record.address,
      public_key=record.public_key,
      endpoint=sample.endpoint,
      online=online,
      seconds_since_handshake=(
        now - sample.last_handshake if sample.last_handshake != 0 else None),
      rx_rate=rx_rate,
      tx_rate=tx_rate,
      rx_bytes=sample.rx_bytes,
      tx_bytes=sample.tx_bytes)
    checkpoint.peers[record.public_key] = CheckpointEntry(
      rx=sample.rx_bytes,
      tx=sample.tx_bytes,
      sample_epoch=now,
      online=online,
      endpoint=sample.endpoint)
  return (states, checkpoint)


class StateEngine:
  """
  Run one sample-compute-persist cycle at a time: read the runtime's
  counters, classify every registered peer, log transitions since the
  previous checkpoint, and replace the checkpoint.
  """
  def __init__(self,
      registry: PeerRegistry,
      runtime: WireGuardRuntime,
      store: StateStore,
      sink: EventSink,
      pending: PendingDeregistrations | None = None,
      lock: AgentLock | None = None) -> None:
    self.registry = registry
    self.runtime = runtime
    self.store = store
    self.sink = sink
    self.pending = pending
    self.lock = lock
    self.runtime_available = False
    self.last_events: list[PeerEvent] = []
    self.unknown_peers: set[str] = set()


  def tick(self, now: int | None = None) -> dict[str, PeerState]:
    with (self.lock or contextlib.nullcontext()):
      if now is None:
        now = Timestamp.now().from_epoch()
      records = self.registry.list()
      try:
        samples = self.runtime.list_peers()
        self.runtime_available = True
      except AdapterUnavailable as e:
        log.warning("tunnel runtime unavailable, reporting all peers offline: {}", e)
        samples = {}
        self.runtime_available = False

      previous = self.store.load()
      states, checkpoint = compute_tick(records, samples, previous, now)

      if not self.runtime_available:
        # Keep the previous baseline until the runtime can be observed again
        self.last_events = []
        return states

      events = detect_events(
        previous, checkpoint, {r.public_key: r.name for r in records}, now)
      try:
        self.store.save(checkpoint)
      except OSError as e:
        # Transitions will be detected again against the old checkpoint
        log.error("failed to save checkpoint {}: {}", self.store.path, e)
        events = []
      self.last_events = events
      self.sink.append(self.last_events)

      known = {r.public_key for r in records}
      self._reconcile_pending(samples, known)
      self.unknown_peers = set(samples) - known
      if self.unknown_peers:
        log.debug("runtime reports {} unregistered peers: {}",
          len(self.unknown_peers), sorted(self.unknown_peers))
      log.activity("tick completed: {} peers, {} online, {} events",
        len(states), sum(1 for s in states.values() if s.online), len(self.last_events))
      return states


  def _reconcile_pending(self, samples: Mapping[str, RuntimeSample], known: set[str]) -> None:
    if self.pending is None:
      return
    pending = self.pending.load()
    if not pending:
      return
    remaining = set()
    for pubkey in sorted(pending):
      if pubkey not in samples or pubkey in known:
        log.activity("pending deregistration resolved: {}", pubkey)
        continue
      try:
        self.runtime.deregister_peer(pubkey)
        log.activity("pending deregistration completed: {}", pubkey)
      except (RuntimeDeregisterFailed, AdapterUnavailable) as e:
        log.warning("pending deregistration failed again for {}: {}", pubkey, e)
        remaining.add(pubkey)
    self.pending.save(remaining)
