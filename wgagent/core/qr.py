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
import subprocess

from .exec import exec_command
from .errors import WireGuardError


def encode_qr_from_text(text: str) -> str:
  """
  Encode text (usually a client profile) as a QR code with ``qrencode``,
  rendered with UTF-8 block characters for display on a terminal.
  """
  try:
    result = exec_command(["qrencode", "-t", "ansiutf8"], input=text)
  except FileNotFoundError as e:
    raise WireGuardError("qrencode is not installed") from e
  except subprocess.CalledProcessError as e:
    raise WireGuardError("failed to encode qr code") from e
  return result.stdout.decode("utf-8")
