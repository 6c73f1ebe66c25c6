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
import sys

from .log import Logger

log = Logger.sublogger("ask")


QUERY_ASSUME_YES = False


def ask_assume_yes(value: bool = True):
  global QUERY_ASSUME_YES
  QUERY_ASSUME_YES = value


QUERY_ASSUME_NO = False


def ask_assume_no(value: bool = True):
  global QUERY_ASSUME_NO
  QUERY_ASSUME_NO = value


def ask_yes_no(question: str) -> bool:
  if QUERY_ASSUME_NO:
    log.debug("{} (assuming 'no')", question)
    return False
  elif QUERY_ASSUME_YES:
    log.debug("{} (assuming 'yes')", question)
    return True

  if os.getenv("CI", ""):
    log.error("{} (assuming 'no' because CI is set)", question)
    return False

  valid = {
    "y": True,
    "yes": True,
    "n": False,
    "no": False,
  }
  while True:
    sys.stdout.write(question + " [y/N] ")
    sys.stdout.flush()
    choice = input().strip().lower()
    if choice == "":
      return False
    elif choice in valid:
      return valid[choice]
    sys.stdout.write("\nPlease respond with 'yes' or 'no' (or 'y' or 'n').\n\n")
