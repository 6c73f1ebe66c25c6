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
from typing import Callable
import argparse
import sys
from operator import attrgetter

from ..core.log import Logger, set_color, set_verbosity_count
from ..core.ask import ask_assume_no, ask_assume_yes
from ..agent.config import DEFAULT_ROOT


class SortingHelpFormatter(argparse.HelpFormatter):
  def add_arguments(self, actions):
    actions = sorted(actions, key=attrgetter("option_strings"))
    super(SortingHelpFormatter, self).add_arguments(actions)


def cli_parser_args_common(parser: argparse.ArgumentParser):
  parser.add_argument(
    "-r", "--root", metavar="DIR", default=DEFAULT_ROOT, type=Path,
    help="Directory holding the agent's configuration and state.")
  parser.add_argument(
    "-v", "--verbose", action="count", default=0,
    help="Increase output verbosity. Repeat for increased verbosity.")
  parser.add_argument(
    "-q", "--quiet", action="store_true", default=False,
    help="Suppress all logger output.")
  opts = parser.add_argument_group("User Interaction Options")
  opts.add_argument(
    "-y", "--yes", action="store_true", default=False,
    help="Do not prompt the user with questions, and always assume 'yes' is the answer.")
  opts.add_argument(
    "--no", action="store_true", default=False,
    help="Do not prompt the user with questions, and always assume 'no' is the answer.")


def cli_command_group(
    parent: argparse._SubParsersAction, name: str, title: str, help: str
) -> argparse._SubParsersAction:
  cmd_group = parent.add_parser(name, formatter_class=SortingHelpFormatter, help=help)
  return cmd_group.add_subparsers(help=title)


def cli_command(
    parent: argparse._SubParsersAction,
    name: str,
    cmd: Callable[[argparse.Namespace], None],
    help: str,
    defaults: dict | None = None,
) -> argparse.ArgumentParser:
  command = parent.add_parser(name, formatter_class=SortingHelpFormatter, help=help)
  command.set_defaults(cmd=cmd, **(defaults or {}))
  cli_parser_args_common(command)
  return command


def cli_command_main(
    define_parser: Callable[[argparse._SubParsersAction], None],
    version: str | None = None,
    argv: list[str] | None = None) -> int:
  parser = argparse.ArgumentParser(formatter_class=SortingHelpFormatter)
  if version is not None:
    parser.add_argument("--version", action="version", version=version)
  parser.set_defaults(cmd=None)
  define_parser(parser.add_subparsers(help="Commands"))
  args = parser.parse_args(argv)

  if args.cmd is None:
    parser.print_help()
    return 1

  set_verbosity_count(args.verbose, quiet=args.quiet)
  set_color(sys.stderr.isatty())

  ask_assume_yes(args.yes)
  ask_assume_no(args.no)

  try:
    args.cmd(args)
  except KeyboardInterrupt:
    pass
  except Exception as e:
    Logger.error("command failed: {}", e)
    if Logger.DEBUG:
      Logger.exception(e)
    return 1
  return 0
