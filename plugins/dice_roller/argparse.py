from dataclasses import dataclass
from enum import Enum
import re
from typing import Final


class Display(Enum):
  FULL = "full"
  VALUE = "value"


@dataclass(frozen=True)
class Repeat:
  count: int


@dataclass
class RollArgs:
  expr: str
  display: Display = Display.FULL
  repeat: int = 1


@dataclass
class Help:
  full: bool


type Setting = Display | Repeat | Help


@dataclass
class MissingDiceExpr(Exception):
  pass


@dataclass
class MissingRepeatCount(Exception):
  option: str


@dataclass
class MalformedRepeatCount(Exception):
  option: str


@dataclass
class UnknownDisplay(Exception):
  mode: str


@dataclass
class ConflictingOptions(Exception):
  options: list[str]


# options sit at the end of the command and contain no "-" themselves, so a
# "-" or "--" inside the dice expression ends the scan
option_regex: Final = re.compile(r"(?:^|\s+)(--?)([^-]*)$")

short_displays: Final = {"f": Display.FULL, "v": Display.VALUE}


def parse_args(args: str) -> RollArgs | Help:
  """
  Strip options off the end of `args`, right to left, until a word that is
  not an option. Whatever remains is the dice expression and its note.

  :raises: MissingDiceExpr, MissingRepeatCount, MalformedRepeatCount,
    UnknownDisplay, ConflictingOptions
  """
  found: list[tuple[str, Setting]] = []
  while (m := option_regex.search(args)) is not None:
    leader, option = m.groups()
    match parse_short(option) if leader == "-" else parse_long(option):
      case None:
        break
      case [Help() as asked]:
        return asked
      case settings:
        found.extend((m.group().strip(), s) for s in settings)
    args = args[: m.start()]
  result = RollArgs(args.strip())
  if len(result.expr) == 0:
    raise MissingDiceExpr
  displays: dict[Display, str] = {}
  repeats: dict[int, str] = {}
  for text, setting in reversed(found):
    match setting:
      case Display():
        displays.setdefault(setting, text)
        result.display = setting
      case Repeat(count):
        repeats.setdefault(count, text)
        result.repeat = count
  for options in (displays, repeats):
    if len(options) > 1:
      raise ConflictingOptions(list(options.values()))
  return result


def parse_short(option: str) -> list[Setting] | None:
  """Bundled single letters, as in `-v`, `-vr5`; `r` takes the rest as its count."""
  if len(option.strip()) == 0:
    return None
  settings: list[Setting] = []
  for i, c in enumerate(option):
    match c:
      case "h":
        return [Help(full=False)]
      case "r":
        name = "-" + option[: i + 1]
        settings.append(Repeat(parse_count(option[i + 1 :], name)))
        return settings
      case c if c in short_displays:
        settings.append(short_displays[c])
      case _:
        return None
  return settings


def parse_long(option: str) -> list[Setting] | None:
  match option.split():
    case ["help"]:
      return [Help(full=True)]
    case ["value"] | ["full"]:
      return [Display(option.strip())]
    case ["display", *words]:
      mode = " ".join(words)
      try:
        return [Display(mode)]
      except ValueError:
        raise UnknownDisplay(mode)
    case [word, *_] if word.startswith("repeat"):
      return [Repeat(parse_count(option.strip()[len("repeat") :], "--repeat"))]
    case _:
      return None


def parse_count(text: str, option: str) -> int:
  text = text.strip()
  if len(text) == 0:
    raise MissingRepeatCount(option)
  try:
    return int(text)
  except ValueError:
    raise MalformedRepeatCount(option)
