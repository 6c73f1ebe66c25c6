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

import jinja2


def humanbytes(B):
  "Return the given bytes as a human friendly KB, MB, GB, or TB string"
  B = float(B)
  KB = float(1024)
  MB = float(KB**2)  # 1,048,576
  GB = float(KB**3)  # 1,073,741,824
  TB = float(KB**4)  # 1,099,511,627,776
  if B < KB:
    return "{0:.0f} {1}".format(B, "B")
  elif KB <= B < MB:
    return "{0:.2f} KB".format(B / KB)
  elif MB <= B < GB:
    return "{0:.2f} MB".format(B / MB)
  elif GB <= B < TB:
    return "{0:.2f} GB".format(B / GB)
  else:
    return "{0:.2f} TB".format(B / TB)


def humanrate(B):
  return humanbytes(B) + "/s"


def format_hash(val: str) -> str:
  if len(val) <= 11:
    return val
  return val[:4] + "..." + val[-4:]


def format_seconds(seconds: int | None) -> str:
  if seconds is None:
    return "never"
  mm, ss = divmod(int(seconds), 60)
  hh, mm = divmod(mm, 60)
  dd, hh = divmod(hh, 24)
  result = []
  if dd:
    result.append(f"{dd}d")
  if hh:
    result.append(f"{hh}h")
  if mm:
    result.append(f"{mm}m")
  if ss or not result:
    result.append(f"{ss}s")
  result.append("ago")
  return " ".join(result)


class _Templates:
  def __init__(self):
    self._env = jinja2.Environment(
      loader=jinja2.FileSystemLoader(Path(__file__).parent.parent / "templates"),
      keep_trailing_newline=True,
      undefined=jinja2.StrictUndefined,
    )


  def template(self, name: str) -> jinja2.Template:
    return self._env.get_template(name)


  def render(self, template: str | jinja2.Template, ctx: dict) -> str:
    if not isinstance(template, jinja2.Template):
      template = self.template(template)
    return template.render(ctx)


Templates = _Templates()
