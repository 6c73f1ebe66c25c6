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
import time
from typing import Callable

from ..core.log import Logger
from .state import PeerState, StateEngine

log = Logger.sublogger("monitor")


def monitor(
    engine: StateEngine,
    interval: float,
    show: Callable[[dict[str, PeerState]], None],
    count: int | None = None,
    sleep: Callable[[float], None] = time.sleep) -> int:
  """
  Run ticks until interrupted (or ``count`` ticks completed), sleeping
  ``interval`` seconds in between. Returns the number of ticks run.

  The checkpoint is only replaced at the end of a complete tick, so an
  interrupt can stop the loop at any time.
  """
  ticks = 0
  log.activity("monitoring every {}s", interval)
  try:
    while count is None or ticks < count:
      states = engine.tick()
      ticks += 1
      show(states)
      if count is not None and ticks >= count:
        break
      sleep(interval)
  except KeyboardInterrupt:
    log.activity("monitor interrupted after {} ticks", ticks)
  return ticks
