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
import multiprocessing
import os
import signal
import time
from pathlib import Path

import pytest

from wgagent.core.errors import LockTimeout
from wgagent.agent.lock import AgentLock


def _hold_lock(path: Path, ready) -> None:
  AgentLock(path, timeout=1).__enter__()
  ready.set()
  time.sleep(60)


def test_acquire_and_release(tmp_path: Path):
  path = tmp_path / "state" / "wgagent.pid"
  with AgentLock(path, timeout=1):
    assert int(path.read_text()) == os.getpid()
  assert not path.exists()


def test_held_lock_times_out(tmp_path: Path):
  path = tmp_path / "wgagent.pid"
  ctx = multiprocessing.get_context("fork")
  ready = ctx.Event()
  holder = ctx.Process(target=_hold_lock, args=(path, ready))
  holder.start()
  try:
    assert ready.wait(10)
    with pytest.raises(LockTimeout):
      with AgentLock(path, timeout=0.5):
        pass
    assert int(path.read_text()) == holder.pid
  finally:
    holder.kill()
    holder.join()


def test_lock_of_killed_holder_is_broken(tmp_path: Path):
  path = tmp_path / "wgagent.pid"
  ctx = multiprocessing.get_context("fork")
  ready = ctx.Event()
  holder = ctx.Process(target=_hold_lock, args=(path, ready))
  holder.start()
  assert ready.wait(10)
  os.kill(holder.pid, signal.SIGKILL)
  holder.join()
  assert int(path.read_text()) == holder.pid

  with AgentLock(path, timeout=1):
    assert int(path.read_text()) == os.getpid()
  assert not path.exists()


def test_lock_with_unreadable_pid_is_kept(tmp_path: Path):
  path = tmp_path / "wgagent.pid"
  path.write_text("")
  with pytest.raises(LockTimeout):
    with AgentLock(path, timeout=0.2):
      pass
  assert path.exists()
