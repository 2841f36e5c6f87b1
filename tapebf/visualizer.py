from __future__ import annotations

import argparse
import shlex
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from .errors import StepLimitExceeded, UnbalancedBrackets
from .instructions import Instruction
from .interpreter import ExecutionState, TapeInterpreter, snapshot
from .machine import Configuration, LoopMode
from .parser import format_program, parse, to_input_cells


@dataclass
class VisualizerSession:
    code: str
    input_template: List[int]
    tape_window: int = 10
    max_steps: Optional[int] = None
    history_limit: int = 200
    loop_mode: LoopMode = LoopMode.DO_WHILE
    strict: bool = False

    def __post_init__(self) -> None:
        self.program: List[Instruction] = parse(self.code, strict=self.strict)
        self.breakpoints: set[int] = set()
        self.history: List[ExecutionState] = []
        self.hit_breakpoint: Optional[int] = None
        self._init_interpreter()

    def _init_interpreter(self) -> None:
        self.interpreter = TapeInterpreter(loop_mode=self.loop_mode)
        self.step_iter = self.interpreter.step(
            self.program,
            input_data=list(self.input_template),
            max_steps=self.max_steps,
            tape_window=self.tape_window,
        )
        self.finished = False
        self.last_state: ExecutionState = snapshot(
            Configuration.initial(self.program, self.input_template),
            len(self.program),
            self.tape_window,
        )
        self._record_state(self.last_state)

    def restart(self) -> None:
        self._init_interpreter()

    def _record_state(self, state: ExecutionState) -> None:
        self.history.append(state)
        if len(self.history) > self.history_limit:
            self.history.pop(0)
        self.last_state = state

    def step_forward(self, count: int = 1) -> Sequence[ExecutionState]:
        states: List[ExecutionState] = []
        if count <= 0:
            return states
        self.hit_breakpoint = None
        for _ in range(count):
            if self.finished:
                break
            try:
                state = next(self.step_iter)
            except StopIteration:
                self.finished = True
                break
            except StepLimitExceeded:
                self.finished = True
                raise
            self._record_state(state)
            states.append(state)
            if state.finished or state.faulted:
                self.finished = True
                break
            # Only stop when the instruction is about to run, not while a
            # loop scan passes over it.
            if state.state == "Fetch" and state.pc in self.breakpoints:
                self.hit_breakpoint = state.pc
                break
        return states

    def run_until_break(self, limit: Optional[int] = None) -> Sequence[ExecutionState]:
        states: List[ExecutionState] = []
        executed = 0
        while limit is None or executed < limit:
            step_states = self.step_forward(1)
            if not step_states:
                break
            states.extend(step_states)
            executed += 1
            if self.hit_breakpoint is not None or self.finished:
                break
        return states

    def current_state(self) -> ExecutionState:
        return self.last_state

    def add_breakpoint(self, pc: int) -> None:
        self.breakpoints.add(pc)

    def remove_breakpoint(self, pc: int) -> bool:
        if pc in self.breakpoints:
            self.breakpoints.remove(pc)
            return True
        return False

    def clear_breakpoints(self) -> None:
        self.breakpoints.clear()

    def list_breakpoints(self) -> List[int]:
        return sorted(self.breakpoints)

    def is_finished(self) -> bool:
        return self.finished

    def is_faulted(self) -> bool:
        return self.last_state.faulted


def format_state(state: ExecutionState, code: str) -> str:
    lines: List[str] = []
    label = state.state
    if state.depth is not None:
        label += f"(depth={state.depth})"
    cmd_display = state.command if state.command is not None else "HALT"
    lines.append(
        f"step={state.step} state={label} pc={state.pc}/{state.code_length} "
        f"command={cmd_display!r} pointer={state.pointer}"
    )
    if state.output:
        lines.append(f"output={state.output!r}")
    tape_parts: List[str] = []
    for idx, value in enumerate(state.tape):
        absolute = state.tape_start + idx
        cell_repr = f"{absolute}:{value:03}"
        if absolute == state.pointer:
            tape_parts.append(f"[{cell_repr}]")
        else:
            tape_parts.append(f" {cell_repr} ")
    lines.append("tape=" + " ".join(tape_parts))
    lines.append(f"code={_format_code_window(code, state.pc)}")
    if state.faulted:
        lines.append("fault=unbalanced loop end")
    return "\n".join(lines)


def _format_code_window(code: str, pc: int, window: int = 16) -> str:
    if not code:
        return "(empty)"
    pieces: List[str] = []
    if pc < 0:
        pieces.append("[START]")
    start = max(0, pc - window)
    end = min(len(code), pc + window + 1)
    for index in range(start, end):
        ch = code[index]
        if index == pc:
            pieces.append(f"[{ch}]")
        else:
            pieces.append(ch)
    if pc >= len(code):
        pieces.append("[END]")
    return "".join(pieces)


def run_repl(session: VisualizerSession) -> None:
    code = format_program(session.program)
    print("tapebf Visualizer (type 'help' for commands)")
    _print_state(session.current_state(), code)
    while True:
        try:
            line = input("(viz) ").strip()
        except EOFError:
            print()
            break
        if not line:
            continue
        try:
            parts = shlex.split(line)
        except ValueError as exc:
            print(f"コマンドを解釈できません: {exc}", file=sys.stderr)
            continue
        if not parts:
            continue
        command = parts[0].lower()
        args = parts[1:]
        try:
            if command in {"n", "next"}:
                count = max(1, int(args[0])) if args else 1
                states = session.step_forward(count)
                if states:
                    _print_state(states[-1], code)
                elif session.is_finished():
                    print("プログラムは終了しています。")
            elif command in {"r", "run"}:
                limit = int(args[0]) if args else None
                try:
                    states = session.run_until_break(limit)
                except StepLimitExceeded:
                    print("ステップ上限に達しました。", file=sys.stderr)
                    continue
                if states:
                    _print_state(states[-1], code)
                    if session.hit_breakpoint is not None:
                        print(f"ブレークポイント {session.hit_breakpoint} に到達しました。")
                        session.hit_breakpoint = None
                if session.is_faulted():
                    print("対応するループ開始がありません。", file=sys.stderr)
                elif session.is_finished():
                    print("プログラムは終了しました。")
            elif command == "state":
                _print_state(session.current_state(), code)
            elif command == "history":
                count = int(args[0]) if args else 10
                for state in session.history[-count:]:
                    _print_state(state, code)
            elif command == "break":
                if not args:
                    print("ブレークポイントを指定してください。")
                    continue
                pc = int(args[0])
                session.add_breakpoint(pc)
                print(f"ブレークポイント {pc} を設定しました。")
            elif command == "breaks":
                points = session.list_breakpoints()
                if not points:
                    print("ブレークポイントはありません。")
                else:
                    print("ブレークポイント:", ", ".join(map(str, points)))
            elif command == "clear":
                if not args:
                    session.clear_breakpoints()
                    print("ブレークポイントを全て削除しました。")
                else:
                    pc = int(args[0])
                    if session.remove_breakpoint(pc):
                        print(f"ブレークポイント {pc} を削除しました。")
                    else:
                        print(f"ブレークポイント {pc} は存在しません。")
            elif command == "restart":
                session.restart()
                print("セッションを再開しました。")
                _print_state(session.current_state(), code)
            elif command in {"quit", "exit"}:
                break
            elif command == "help":
                _print_help()
            else:
                print("不明なコマンドです。'help' を参照してください。")
        except ValueError:
            print("数値が正しくありません。", file=sys.stderr)


def _print_state(state: ExecutionState, code: str) -> None:
    print("-" * 40)
    print(format_state(state, code))


def _print_help() -> None:
    print(
        "利用可能なコマンド:\n"
        "  next [N]    : N ステップ進める (省略時 1)\n"
        "  run [N]     : ブレークポイントまたは N ステップ到達まで実行\n"
        "  state       : 現在の状態を表示\n"
        "  history [N] : 直近 N ステップの履歴を表示\n"
        "  break PC    : 指定 PC にブレークポイントを設定\n"
        "  breaks      : ブレークポイント一覧\n"
        "  clear [PC]  : ブレークポイントを削除 (PC 省略で全削除)\n"
        "  restart     : セッションをリセット\n"
        "  quit/exit   : 終了\n"
    )


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="tapebf visualizer")
    parser.add_argument("source", help="Path to the program source file")
    parser.add_argument("--input", default="", help="入力として渡す文字列")
    parser.add_argument(
        "--mode",
        choices=[mode.value for mode in LoopMode],
        default=LoopMode.DO_WHILE.value,
        help="ループ開始の扱い (デフォルト: do-while)",
    )
    parser.add_argument(
        "--max-steps",
        type=int,
        default=5_000_000,
        help="ステップ上限 (デフォルト: 5,000,000)",
    )
    parser.add_argument("--strict", action="store_true", help="括弧の対応を事前に検査する")
    parser.add_argument("--tape-window", type=int, default=10, help="テープ表示の幅")
    parser.add_argument(
        "--history-limit",
        type=int,
        default=200,
        help="履歴に保持するステップ数",
    )
    args = parser.parse_args(argv)

    try:
        source_text = Path(args.source).read_text(encoding="utf-8")
    except OSError as exc:
        print(f"ファイルを開けません: {exc}", file=sys.stderr)
        return 1

    try:
        session = VisualizerSession(
            source_text,
            input_template=to_input_cells(args.input),
            tape_window=args.tape_window,
            max_steps=args.max_steps,
            history_limit=args.history_limit,
            loop_mode=LoopMode(args.mode),
            strict=args.strict,
        )
    except UnbalancedBrackets as exc:
        print(f"構文エラー: {exc}", file=sys.stderr)
        return 1

    try:
        run_repl(session)
    except StepLimitExceeded:
        print("ステップ上限に達しました。", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
