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
import sys
import subprocess
from pathlib import Path
from typing import Sequence, Union

from .log import Logger

log = Logger.sublogger("exec")


def _debug_log(fmt: str, *args):
  return print(fmt.format(*args), file=sys.stderr)


def exec_command(
  cmd_args: Sequence[Union[str, Path]],
  input: str | bytes | None = None,
  timeout: float | None = None,
) -> subprocess.CompletedProcess:
  """
  Run a command, capturing its output. A non-zero exit status raises
  ``subprocess.CalledProcessError`` after logging the command's output.
  """
  logger = log.trace if not log.DEBUG else _debug_log
  logger("+ " + " ".join(["{}"] * len(cmd_args)), *cmd_args)

  if isinstance(input, str):
    input = input.encode("utf-8")

  try:
    result = subprocess.run(
      cmd_args,
      stdout=subprocess.PIPE,
      stderr=subprocess.PIPE,
      input=input,
      timeout=timeout,
      check=True)
  except subprocess.CalledProcessError as e:
    log.command(cmd_args, e.returncode, e.stdout, e.stderr)
    raise

  return result
