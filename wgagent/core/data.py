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
import copy
import tempfile
from pathlib import Path

import yaml


def apply_defaults(values: dict, defaults: dict) -> dict:
  def _apply_recur(current_values: dict, current_defaults: dict, parent_key: list[str]):
    result = copy.deepcopy(current_values)
    for k, def_v in current_defaults.items():
      current_key = [*parent_key, k]
      if k not in current_values:
        v = def_v
      else:
        v = current_values[k]
        if isinstance(v, dict):
          if not isinstance(def_v, dict):
            raise ValueError("expected a dictionary", ".".join(current_key))
          v = _apply_recur(v, def_v, current_key)
      result[k] = v
    return result

  return _apply_recur(values, defaults, [])


def write_atomic(output: Path, contents: str, mode: int = 0o644) -> None:
  """
  Replace the contents of a file so that readers observe either the
  old or the new version, never a partially written one.

  The data is written to a temporary file in the same directory, flushed
  to disk, and then renamed over the target.
  """
  output = Path(output)
  output.parent.mkdir(parents=True, exist_ok=True)
  fd, tmp_name = tempfile.mkstemp(
    prefix=f".{output.name}-", suffix=".tmp", dir=output.parent)
  tmp_f = Path(tmp_name)
  try:
    with os.fdopen(fd, "wt") as output_stream:
      output_stream.write(contents)
      output_stream.flush()
      os.fsync(output_stream.fileno())
    tmp_f.chmod(mode)
    os.replace(tmp_f, output)
  except BaseException:
    tmp_f.unlink(missing_ok=True)
    raise


def yaml_dump_atomic(output: Path, val: object, mode: int = 0o644) -> None:
  write_atomic(output, yaml.safe_dump(val, sort_keys=True), mode=mode)
