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
import os
from pathlib import Path

import lockfile
from lockfile.pidlockfile import PIDLockFile

from ..core.errors import LockTimeout
from ..core.log import Logger

log = Logger.sublogger("lock")


def process_alive(pid: int) -> bool:
  try:
    os.kill(pid, 0)
  except ProcessLookupError:
    return False
  except PermissionError:
    # The process exists but belongs to another user
    return True
  return True


class AgentLock:
  """
  Advisory lock serializing writers of the checkpoint and the peer
  registry across processes. Held for the duration of one tick or one
  peer addition/removal.

  The lock is a PID file. A lock left behind by a process that no longer
  exists is broken before trying to acquire it.
  """
  def __init__(self, path: Path, timeout: float | None = None) -> None:
    self.path = Path(path)
    self.timeout = timeout
    self._lock = None


  def _break_stale(self, lock: PIDLockFile) -> None:
    pid = lock.read_pid()
    if pid is None or pid == os.getpid() or process_alive(pid):
      return
    # Make sure the file still belongs to the dead holder
    if lock.read_pid() != pid:
      return
    log.warning("breaking stale lock held by dead process {}: {}", pid, lock.path)
    lock.break_lock()


  def __enter__(self) -> "AgentLock":
    self.path.parent.mkdir(parents=True, exist_ok=True)
    lock = PIDLockFile(str(self.path))
    self._break_stale(lock)
    try:
      lock.acquire(timeout=self.timeout)
    except lockfile.LockTimeout as e:
      raise LockTimeout(f"timed out waiting for lock: {lock.path} (pid {lock.read_pid()})") from e
    except lockfile.AlreadyLocked as e:
      raise LockTimeout(f"already locked: {lock.path} (pid {lock.read_pid()})") from e
    self._lock = lock
    log.trace("acquired {}", lock.path)
    return self


  def __exit__(self, *exc_info) -> None:
    lock = self._lock
    self._lock = None
    if lock is not None and lock.i_am_locking():
      lock.release()
      log.trace("released {}", lock.path)
