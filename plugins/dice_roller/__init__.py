import os
import textwrap
import traceback
from typing import Final, assert_never, cast

import nonebot as nb
import nonebot.adapters as nba
import nonebot.adapters.onebot.v11 as ob11
import nonebot.params as nbp
from pydantic import BaseModel

from pooldice.expr import (
  Comparison,
  ExprGenerator,
  Generator,
  PoolTerm,
  Target,
  Term,
)
from pooldice.ops import PoolOp, TooManyExplosions
from pooldice.parse import ExpectError, ParseFailure, ZeroFacedDie, parse_prefix
from pooldice.pool import Results
from pooldice.source import GeneratorSource, RollContext
from pooldice.token import Number, NumberOverflow, Percent, Simple

from .argparse import (
  ConflictingOptions,
  Display,
  Help,
  MalformedRepeatCount,
  MissingDiceExpr,
  MissingRepeatCount,
  RollArgs,
  UnknownDisplay,
  parse_args,
)


class Config(BaseModel):
  line_limit: int = 80
  msg_limit: int = 200
  rep_limit: int = 20
  explode_limit: int = 50


config: Final = nb.get_plugin_config(Config)

source = GeneratorSource()

on_roll = nb.on_command("roll", aliases={"r"}, block=True)


@on_roll.handle()
async def roll(evt: nba.Event, arg: nba.Message = nbp.CommandArg()):
  if not all(seg.is_text() for seg in arg):
    await on_roll.finish("不要在掷骰命令里夹杂非文本内容！需要帮助请用 .r -h")
  # begin parse args
  try:
    parsed = parse_args(arg.extract_plain_text())
  except MissingDiceExpr:
    await on_roll.finish("请问是要让我骰什么？需要讲解格式的话请用 .r -h")
  except MissingRepeatCount as ex:
    await on_roll.finish(
      f"请在 {ex.option} 后面给出需要重复的次数！需要帮助请用 .r -h"
    )
  except MalformedRepeatCount as ex:
    await on_roll.finish(
      f"{ex.option} 后面必须是正确的数字！需要帮助请用 .r -h"
    )
  except UnknownDisplay as ex:
    if len(ex.mode) == 0:
      await on_roll.finish("请在 --display 后面给出显示方式：full 或者 value")
    await on_roll.finish(
      f"不认识“{ex.mode}”这种显示方式，只有 full 和 value 可选"
    )
  except ConflictingOptions as ex:
    await on_roll.finish(
      f"你给出了互相矛盾的选项：{"，".join(ex.options)}。到底以哪个为准？"
    )
  # end parse args
  match parsed:
    case RollArgs() as args:
      if args.repeat == 0:
        await on_roll.finish("重复 0 次，意思就是什么都不用做咯？")
      if args.repeat > config.rep_limit:
        await on_roll.finish(
          "想让我多陪一会可以直说，没必要用这么多次掷骰拖时间~"
        )
      # begin parse_prefix
      try:
        note, gen = parse_prefix(args.expr)
      except ParseFailure as ex:
        await on_roll.finish(parse_failure_message(ex))
      except Exception as ex:
        await on_roll.finish(
          "表达式解析过程中发生了意料之外的异常：\n"
          + "".join(traceback.format_exception(ex)).replace(os.getcwd(), ".")
        )
      # end parse_prefix
      # begin generate
      ctx = RollContext(source, config.explode_limit)
      try:
        results = [gen.generate(ctx) for _ in range(args.repeat)]
      except TooManyExplosions as ex:
        await on_roll.finish(
          f"“{ex.op}”连续爆了 {ex.limit} 轮还没停下，骰子把你埋了起来"
        )
      except Exception as ex:
        await on_roll.finish(
          "掷骰过程中发生了意料之外的异常：\n"
          + "".join(traceback.format_exception(ex)).replace(os.getcwd(), ".")
        )
      # end generate
      nb.logger.debug(
        f"rolled {gen} {args.repeat} time(s): "
        + ", ".join(str(r.outcome()) for r in results)
      )
      # begin compose message
      note = note.strip()
      msg: list[nba.Message | str]
      if isinstance(evt, ob11.GroupMessageEvent):
        at_user = ob11.MessageSegment.at(evt.get_user_id())
        if len(note) != 0:
          msg = [at_user + f" 关于“{note}”的掷骰结果如下"]
        else:
          msg = [at_user + " 的掷骰结果如下"]
      else:
        if len(note) != 0:
          msg = [f"关于“{note}”的掷骰结果如下"]
        else:
          msg = ["掷骰结果如下"]
      if args.repeat == 1:
        msg[-1] += "：\n"
        msg[-1] += compose_message(gen, results[0], args.display)
      else:
        msg[-1] += "\n"
        for i, result in enumerate(results):
          msg[-1] += f"第 {i + 1} 次掷骰："
          msg[-1] += compose_message(gen, result, args.display)
          if i < args.repeat - 1:
            if len(msg[-1]) > config.msg_limit:
              msg.append("")
            else:
              msg[-1] += "\n"
      # end compose message
      for m in msg:
        if isinstance(m, ob11.Message):
          m.reduce()
        await on_roll.send(m)
    case Help(full):
      if full:
        for seg in full_help:
          await on_roll.send(seg)
      else:
        await on_roll.finish(short_help)
    case never:
      assert_never(never)


def compose_message(gen: Generator, results: Results, display: Display) -> str:
  if display == Display.VALUE:
    return str(results.outcome())
  head = gen.render()
  body = results.render(config.line_limit)
  if len(head) + len(body) < config.line_limit:
    return f"{head}: {body}"
  else:
    return f"{head}:\n= {body}"


def parse_failure_message(ex: ParseFailure) -> str:
  match ex.__cause__:
    case ExpectError(expected, got):
      match got:
        case None:
          error_msg = "表达式不完整！末尾缺少"
        case tok:
          error_msg = "表达式中有错误！"
          lookback_limit = 10
          start = tok.span.start
          if start == 0:
            error_msg += "开头"
          elif start <= lookback_limit:
            error_msg += f"“{ex.source[:start]}”后面"
          else:
            error_msg += f"“…{ex.source[start - lookback_limit:start]}”后面"
          error_msg += f"不应该是“{ex.source[tok.span]}”，而应该接"
      match expected:
        case (*exps, exp_last):
          error_msg += (
            "、".join(expectation_to_str(exp) for exp in exps)
            + "或者"
            + expectation_to_str(exp_last)
          )
        case (exp,) | exp:
          error_msg += expectation_to_str(cast(ExpectError.Expectation, exp))
      return error_msg
    case ZeroFacedDie(span):
      return f"“{ex.source[span]}”坍缩成黑洞吞噬了你，你死了"
    case NumberOverflow(span):
      return f"“{ex.source[span]}”这个数字太大了，我数不过来"
    case _:
      return f"无法解析“{ex.source}”"


def expectation_to_str(exp: ExpectError.Expectation):
  if exp == ExprGenerator:
    return "表达式"
  elif exp == Term:
    return "骰池或数字"
  elif exp == PoolTerm:
    return "骰池"
  elif exp == PoolOp:
    return "骰池操作符"
  elif exp == Target:
    return "目标"
  elif exp == Comparison:
    return "比较符"
  elif exp == Number:
    return "数字"
  elif exp == Percent:
    return "“%”"
  elif isinstance(exp, Simple.Kind):
    return f"“{exp.value}”"
  else:
    raise ValueError("unexpected expectation")


short_help: Final = textwrap.dedent("""\
  .rd6  掷一个 d6
  .r3d6  掷三个 d6，求和
  .rd%  掷一个 d100
  .rd20+5  掷一个 d20，加上 5
  .r2d20^1  掷两个 d20，取高
  .r2d20`1  掷两个 d20，取低
  .r4d6^3  掷 4 个 d6，去掉最低值后求和
  .r1d20ADV  整组重掷一次，取总和较高的一组
  .r1d6!  掷一个 d6，出 6 就再加骰一个
  .r3d6**  每个出 6 的骰子都继续加骰，直到不再出 6
  .r(6d10)[8]  掷 6 个 d10，数出大于等于 8 的个数
  .r3d6{10}  掷 3d6，从 10 开始计算成功等级
  .r3d8 > 4d6  比较两组骰子的大小
  .rd20 -r5  重复掷 5 次 d20
  .rd20 -v  只给出最终结果
  若要了解更多高级用法请用 .r --help""")

full_help: Final = [
  textwrap.dedent(seg)
  for seg in (
    """\
    * 布罗姆给你递了一张印着密密麻麻小字的说明书
    指令格式：
      .roll<expr>[note] [options]
      .r<expr>[note] [options]
    （……）""",
    """\
    骰子表达式 <expr>：
      <succ>  一组骰子及其成功判定
      <succ> > <succ>  左边大于右边时结果为 1，否则为 0
      <succ> >= <succ>、<succ> < <succ>、<succ> <= <succ>、<succ> = <succ>  同上
      <succ> <=> <succ>  左边更大为 1，相等为 0，右边更大为 -1
    成功判定 <succ>：
      <hits>{n}  总和达到 n 时计 1 级成功，每多 1 点再多 1 级，不足 n 为 0
      <hits>{n,m}  总和达到 n 时计 1 级成功，每多 m 点再多 1 级
      <hits>[n]  每个不小于 n 的骰子计为 1 次命中，结果为命中数
      <hits>(n)  每个不大于 n 的骰子计为 1 次命中，结果为命中数
      (<terms>)  括号
    （……）""",
    """\
    骰池 <terms>：
      <term> + <term>  加法
      <term> - <term>  减法（被减的骰子记为负值，命中时记为 -1）
      <term> <term>  直接并列也是加法
      <number>  一个常数
      <count>d<range>[op]  掷 <count> 个 <range> 面骰，省略 <count> 则为 1
      <count>d%  一个 d100，d%% 为 d1000，依此类推
    （……）""",
    """\
    骰池操作符 [op]：
      ![n]  整组骰子都不小于 n（默认为最大面）时，每个骰子再加骰一个
      !![n]  同上，新加的骰子依然全部达标则继续加骰
      *[n]  每个不小于 n（默认为最大面）的骰子加骰一个
      **[n]  同上，新加的骰子达标则继续加骰
      ++[n]  每个骰子加上 n，默认为 1
      --[n]  每个骰子减去 n，默认为 1
      ^n  取最高的 n 个
      `n  取最低的 n 个
      ~n  取居中的 n 个
      ADV  整组重掷一次，取总和较高的一组
      DIS  整组重掷一次，取总和较低的一组
      Y  只保留出现次数最多的点数
    """,
    """\
    备注 [note]：为掷骰提供的补充说明
    选项 [options]：
      -f, --full  给出每个骰子的点数（默认）
      -v, --value  只给出最终结果
      --display <mode>  显示方式，full 或者 value
      -r<number>, --repeat <number>  重复掷骰 <number> 次
      -h  获取简短的说明
      --help  获取本说明
    被丢弃的骰子记为“n-”，加骰记为“n*”""",
  )
]
