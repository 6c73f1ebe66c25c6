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
import re
import sys
import numbers
import threading
import traceback
from collections import namedtuple
from functools import cached_property

from termcolor import colored


class LoggerError(Exception):
  def __init__(self, msg):
    self.msg = msg


class _LogLevel:
  def __init__(self, name, lvl):
    self.name = name
    self.lvl = lvl

  def __eq__(self, other):
    if isinstance(other, str):
      return self.name == other
    elif isinstance(other, numbers.Number):
      return self.lvl == other
    elif isinstance(other, _LogLevel):
      return self.lvl == other.lvl
    else:
      raise TypeError()

  def __ge__(self, other):
    if isinstance(other, _LogLevel):
      return self.lvl >= other.lvl
    elif isinstance(other, numbers.Number):
      return self.lvl >= other
    else:
      raise TypeError()

  def __hash__(self):
    return hash(self.lvl)

  def __str__(self):
    return self.name


_LogLevels = namedtuple("LogLevels",
  ["trace", "debug", "activity", "info", "warning", "error", "quiet"])

level = _LogLevels(
  _LogLevel("trace", 500),
  _LogLevel("debug", 400),
  _LogLevel("activity", 350),
  _LogLevel("info", 300),
  _LogLevel("warning", 200),
  _LogLevel("error", 100),
  _LogLevel("quiet", 0))

# Levels selected by repeating "-v" on the command line
VERBOSITY_LEVELS = [level.warning, level.info, level.activity, level.debug, level.trace]

_LOGGER_LEVEL = level.warning
_LOGGERS = {}
_LOGGER_LOCK = threading.RLock()
_LOGGER_NOCOLOR = False


def set_verbosity(lvl):
  global _LOGGER_LEVEL
  with _LOGGER_LOCK:
    _LOGGER_LEVEL = lvl


def set_verbosity_count(verbose: int, quiet: bool = False) -> None:
  if quiet:
    set_verbosity(level.quiet)
    return
  verbose = max(0, min(verbose, len(VERBOSITY_LEVELS) - 1))
  set_verbosity(VERBOSITY_LEVELS[verbose])


def set_color(enabled=True):
  global _LOGGER_NOCOLOR
  with _LOGGER_LOCK:
    _LOGGER_NOCOLOR = not enabled


def logger(context, parent: "AgentLogger|None"=None):
  with _LOGGER_LOCK:
    logger = AgentLogger(context, parent=parent)
    if logger.context in _LOGGERS:
      logger = _LOGGERS[logger.context]
    else:
      _LOGGERS[logger.context] = logger
    return logger


def _colorize(lvl, line):
  if lvl >= level.trace:
    return line
  elif lvl >= level.debug:
    return colored(line, "magenta")
  elif lvl >= level.activity:
    return colored(line, "cyan")
  elif lvl >= level.info:
    return colored(line, "green")
  elif lvl >= level.warning:
    return colored(line, "yellow")
  elif lvl >= level.error:
    return colored(line, "red")
  else:
    return line


def _emit_default(logger, context, lvl, line, **kwargs):
  file = kwargs.get("file", sys.stderr)
  exc_info = kwargs.get("exc_info", None)
  with _LOGGER_LOCK:
    if not _LOGGER_NOCOLOR:
      line = _colorize(lvl, line)
    print(line, file=file)
    file.flush()
    if exc_info:
      traceback.print_exception(*exc_info, file=file)


def _format_default(logger, context, lvl, fmt, *args, **kwargs):
  if not fmt.startswith("["):
    fmt = " " + fmt
  return ("[{}][{}]" + fmt).format(lvl.name[0], context, *args)


class AgentLogger:
  Level = level

  def __init__(
      self,
      context,
      format=_format_default,
      emit=_emit_default,
      parent: "AgentLogger|None"=None):
    if not context:
      raise LoggerError("invalid logger context")
    self.parent = parent
    self.format = format
    self.emit = emit
    self.local_level = None
    context = self.camelcase_to_kebabcase(context)
    if self.parent:
      self.context = f"{self.parent.context}.{context}"
    else:
      self.context = context


  @cached_property
  def DEBUG(self) -> bool:
    return bool(os.environ.get("DEBUG", False))


  @property
  def level(self) -> _LogLevel:
    if self.local_level is not None:
      return self.local_level
    return _LOGGER_LEVEL


  def _log(self, lvl, *args, **kwargs):
    if not self.level >= lvl:
      return
    if len(args) == 1:
      line = self.format(self, self.context, lvl, "{}", *args)
    else:
      line = self.format(self, self.context, lvl, args[0], *args[1:])
    self.emit(self, self.context, lvl, line, **kwargs)


  def exception(self, e):
    self.error("[exception] {}", e, exc_info=sys.exc_info())


  def command(self, cmd_args, rc, stdout=None, stderr=None):
    def _decode(output):
      if not output:
        return "<none>"
      if isinstance(output, bytes):
        return output.decode("utf-8")
      return output
    if rc != 0:
      self.error("command failed: {}", " ".join(map(str, cmd_args)))
      self.error("  stdout: {}", _decode(stdout))
      self.error("  stderr: {}", _decode(stderr))
    else:
      self.trace("  stdout: {}", _decode(stdout))
      self.trace("  stderr: {}", _decode(stderr))


  def error(self, *args, **kwargs):
    self._log(level.error, *args, **kwargs)

  def warning(self, *args, **kwargs):
    self._log(level.warning, *args, **kwargs)

  def info(self, *args, **kwargs):
    self._log(level.info, *args, **kwargs)

  def activity(self, *args, **kwargs):
    self._log(level.activity, *args, **kwargs)

  def debug(self, *args, **kwargs):
    self._log(level.debug, *args, **kwargs)

  def trace(self, *args, **kwargs):
    self._log(level.trace, *args, **kwargs)


  def sublogger(self, subcontext: str) -> "AgentLogger":
    return logger(subcontext, parent=self)


  @classmethod
  def camelcase_to_kebabcase(cls, val: str) -> str:
    val = val[0].lower() + val[1:]
    return re.sub(r"(?<!^)(?=[A-Z])", "-", val).lower()


Logger = logger("wgagent")
