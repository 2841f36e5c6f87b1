from pathlib import Path
import tempfile
from contextlib import redirect_stderr, redirect_stdout
import io
import unittest

from tapebf import (
    Instruction,
    LoopMode,
    StepLimitExceeded,
    TapeInterpreter,
    UnbalancedBrackets,
    UnbalancedLoop,
    UnprintableOutput,
    check_balance,
    format_program,
    parse,
)
from tapebf.cli import (
    EXIT_BAD_SOURCE,
    EXIT_OK,
    EXIT_STEP_LIMIT,
    EXIT_UNBALANCED_LOOP,
    EXIT_UNPRINTABLE_OUTPUT,
    main as cli_main,
)
from tapebf.parser import to_input_cells, to_output_text


class ParserTests(unittest.TestCase):
    def test_maps_every_symbol(self) -> None:
        self.assertEqual(
            parse("><+-[],."),
            [
                Instruction.MOVE_RIGHT,
                Instruction.MOVE_LEFT,
                Instruction.INCREMENT,
                Instruction.DECREMENT,
                Instruction.START_LOOP,
                Instruction.END_LOOP,
                Instruction.GET_CHAR,
                Instruction.PUT_CHAR,
            ],
        )

    def test_skips_unknown_characters(self) -> None:
        self.assertEqual(parse("add one: + \n print it: ."), [Instruction.INCREMENT, Instruction.PUT_CHAR])

    def test_tolerates_unbalanced_brackets_by_default(self) -> None:
        self.assertEqual(parse("]["), [Instruction.END_LOOP, Instruction.START_LOOP])

    def test_strict_rejects_unmatched_end(self) -> None:
        with self.assertRaises(UnbalancedBrackets) as ctx:
            parse("+[-]]", strict=True)
        self.assertEqual(ctx.exception.bracket, "]")
        self.assertEqual(ctx.exception.position, 4)

    def test_strict_rejects_unmatched_start(self) -> None:
        with self.assertRaises(UnbalancedBrackets) as ctx:
            check_balance(parse("[[-]"))
        self.assertEqual(ctx.exception.bracket, "[")
        self.assertEqual(ctx.exception.position, 0)

    def test_unbalanced_brackets_is_a_value_error(self) -> None:
        with self.assertRaises(ValueError):
            parse("]", strict=True)

    def test_format_program(self) -> None:
        program = parse("+ [ - ] comment .")
        self.assertEqual(format_program(program), "+[-].")
        self.assertEqual(format_program(program + [Instruction.HALT]), "+[-].")

    def test_to_input_cells(self) -> None:
        self.assertEqual(to_input_cells("Az0"), [65, 122, 48])

    def test_to_output_text_rejects_cells_past_unicode(self) -> None:
        self.assertEqual(to_output_text([72, 0x10FFFF]), "H\U0010ffff")
        with self.assertRaises(UnprintableOutput) as ctx:
            to_output_text([72, 0x110000])
        self.assertEqual(ctx.exception.value, 0x110000)
        self.assertEqual(ctx.exception.index, 1)


class TapeInterpreterTests(unittest.TestCase):
    def test_simple_output(self) -> None:
        interpreter = TapeInterpreter()
        program = "+" * 65 + "."
        self.assertEqual(interpreter.run_text(program, max_steps=1000), "A")

    def test_accepts_instruction_sequences(self) -> None:
        interpreter = TapeInterpreter()
        program = [Instruction.GET_CHAR, Instruction.INCREMENT, Instruction.PUT_CHAR]
        self.assertEqual(interpreter.run(program, input_data=[41]), [42])

    def test_step_limit_exceeded(self) -> None:
        interpreter = TapeInterpreter()
        with self.assertRaises(StepLimitExceeded):
            interpreter.run("+[]", max_steps=10)
        self.assertEqual(interpreter.last_configuration.steps, 10)

    def test_unbalanced_loop(self) -> None:
        interpreter = TapeInterpreter()
        with self.assertRaises(UnbalancedLoop):
            interpreter.run("+]")
        self.assertTrue(interpreter.last_configuration.faulted)

    def test_strict_interpreter_rejects_before_running(self) -> None:
        with self.assertRaises(UnbalancedBrackets):
            TapeInterpreter(strict=True).run("+]")

    def test_classic_mode(self) -> None:
        interpreter = TapeInterpreter(loop_mode=LoopMode.CLASSIC)
        self.assertEqual(interpreter.run("[.]+."), [1])

    def test_step_sequence_ends_with_finished_state(self) -> None:
        interpreter = TapeInterpreter()
        states = list(interpreter.step("++.", tape_window=1))
        self.assertEqual(len(states), 7)
        self.assertEqual([state.step for state in states], list(range(1, 8)))
        self.assertTrue(states[-1].finished)
        self.assertIsNone(states[-1].command)
        self.assertEqual(states[-1].pc, 3)
        self.assertEqual(states[-1].output, [2])
        self.assertEqual(states[-1].tape, [0, 2, 0])
        self.assertEqual(states[-1].tape_start, -1)

    def test_step_reports_scan_states(self) -> None:
        interpreter = TapeInterpreter()
        names = {state.state for state in interpreter.step("++[-]")}
        self.assertIn("FetchGoingBack", names)
        self.assertIn("GoingBack", names)
        self.assertIn("LoopCompare", names)

    def test_output_text(self) -> None:
        interpreter = TapeInterpreter()
        states = list(interpreter.step("+" * 66 + "."))
        self.assertEqual(states[-1].output_text, "B")

    def test_text_output_of_huge_cell(self) -> None:
        interpreter = TapeInterpreter()
        self.assertEqual(interpreter.run(",+.", input_data=[0x10FFFF]), [0x110000])
        with self.assertRaises(UnprintableOutput):
            interpreter.run_text(",+.", input_data=[0x10FFFF])
        states = list(interpreter.step(",+.", input_data=[0x10FFFF]))
        with self.assertRaises(UnprintableOutput):
            states[-1].output_text


class CliTests(unittest.TestCase):
    def _run_cli(self, source: str, *args: str):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "program.bf"
            path.write_text(source, encoding="utf-8")
            stdout, stderr = io.StringIO(), io.StringIO()
            with redirect_stdout(stdout), redirect_stderr(stderr):
                code = cli_main([str(path), *args])
        return code, stdout.getvalue(), stderr.getvalue()

    def test_runs_program(self) -> None:
        code, out, _ = self._run_cli("+" * 72 + ".+.")
        self.assertEqual(code, EXIT_OK)
        self.assertEqual(out, "HI")

    def test_input_is_fed_as_code_points(self) -> None:
        code, out, _ = self._run_cli(",[.,]", "--input", "hey")
        self.assertEqual(code, EXIT_OK)
        self.assertEqual(out, "hey")

    def test_numeric_output(self) -> None:
        code, out, _ = self._run_cli("+.+.", "--numeric")
        self.assertEqual(code, EXIT_OK)
        self.assertEqual(out, "1 2\n")

    def test_missing_source(self) -> None:
        stderr = io.StringIO()
        with redirect_stderr(stderr):
            code = cli_main(["/nonexistent/program.bf"])
        self.assertEqual(code, EXIT_BAD_SOURCE)
        self.assertIn("not found", stderr.getvalue())

    def test_strict_parse_error(self) -> None:
        code, _, err = self._run_cli("+]", "--strict")
        self.assertEqual(code, EXIT_BAD_SOURCE)
        self.assertIn("Unmatched ']'", err)

    def test_step_limit(self) -> None:
        code, out, err = self._run_cli("+[]", "--max-steps", "100")
        self.assertEqual(code, EXIT_STEP_LIMIT)
        self.assertEqual(out, "")
        self.assertIn("step count", err)

    def test_unbalanced_loop(self) -> None:
        code, out, err = self._run_cli("+.]")
        self.assertEqual(code, EXIT_UNBALANCED_LOOP)
        self.assertEqual(out, "")
        self.assertIn("Unbalanced loop", err)

    def test_cell_past_unicode_range(self) -> None:
        code, out, err = self._run_cli(",+.", "--input", "\U0010ffff")
        self.assertEqual(code, EXIT_UNPRINTABLE_OUTPUT)
        self.assertEqual(out, "")
        self.assertIn("error: Output cell 0 holds 1114112", err)

        code, out, _ = self._run_cli(",+.", "--input", "\U0010ffff", "--numeric")
        self.assertEqual(code, EXIT_OK)
        self.assertEqual(out, "1114112\n")

    def test_classic_mode(self) -> None:
        code, out, _ = self._run_cli("[.]+.", "--mode", "classic", "--numeric")
        self.assertEqual(code, EXIT_OK)
        self.assertEqual(out, "1\n")

    def test_trace_goes_to_stderr(self) -> None:
        code, out, err = self._run_cli("+.", "--numeric", "--trace")
        self.assertEqual(code, EXIT_OK)
        self.assertEqual(out, "1\n")
        self.assertIn("step=0 Fetch", err)
        self.assertIn("Execute(HALT)", err)


if __name__ == "__main__":
    unittest.main()
