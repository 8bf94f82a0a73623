# Copyright Red Hat
#
# tests/test_progress.py - Progress and TermControl tests
#
# This file is part of the mirrordiff project.
#
# SPDX-License-Identifier: Apache-2.0
import unittest
from unittest.mock import MagicMock, patch
from datetime import datetime, timedelta
from io import StringIO

from mirrordiff.progress import (
    ASCII_FRAMES,
    DEFAULT_COLUMNS,
    NullThrobber,
    ProgressFactory,
    SimpleThrobber,
    TermControl,
    Throbber,
    WAVE_FRAMES,
    _flush_with_broken_pipe_guard,
)


def _mock_term_control(stream):
    mock_tc = MagicMock(spec=TermControl)
    mock_tc.HIDE_CURSOR = "<HIDE>"
    mock_tc.SHOW_CURSOR = "<SHOW>"
    mock_tc.BOL = "<BOL>"
    mock_tc.UP = "<UP>"
    mock_tc.CLEAR_EOL = "<CE>"
    mock_tc.GREEN = "<G>"
    mock_tc.NORMAL = "<N>"
    mock_tc.term_stream = stream
    return mock_tc


class TestTermControl(unittest.TestCase):
    def test_term_control_default_stdout(self):
        """Test TermControl when stream is None"""
        tc = TermControl(color="never")
        self.assertIsNotNone(tc.term_stream)

    def test_term_control_no_tty(self):
        """Test TermControl when stream is not a TTY."""
        mock_stream = MagicMock()
        mock_stream.isatty.return_value = False

        tc = TermControl(term_stream=mock_stream)

        self.assertEqual(tc.BOL, "")
        self.assertEqual(tc.GREEN, "")
        self.assertIsNone(tc.columns)
        self.assertEqual(tc.width, DEFAULT_COLUMNS)

    def test_term_control_bad_color(self):
        with self.assertRaises(ValueError):
            TermControl(color="sometimes")

    def test_term_control_curses_error(self):
        """Test TermControl handles curses setup errors gracefully."""
        mock_stream = MagicMock()
        mock_stream.isatty.return_value = True

        with patch("mirrordiff.progress.curses") as mock_curses:
            mock_curses.setupterm.side_effect = Exception("Curses error")
            tc = TermControl(term_stream=mock_stream)
        self.assertEqual(tc.BOL, "")
        self.assertEqual(tc.RED, "")

    def test_term_control_always_without_terminal(self):
        """Test forced ANSI color when no terminal can be set up."""
        with patch("mirrordiff.progress.curses") as mock_curses:
            mock_curses.setupterm.side_effect = Exception("Curses error")
            tc = TermControl(term_stream=StringIO(), color="always")
        self.assertEqual(tc.RED, "\033[0;31m")
        self.assertEqual(tc.CYAN, "\033[0;36m")
        self.assertEqual(tc.NORMAL, "\033[0m")

    def test_term_control_init_keyboard_interrupt(self):
        """Test that KeyboardInterrupt in setupterm is re-raised."""
        mock_stream = MagicMock()
        mock_stream.isatty.return_value = True

        with patch("mirrordiff.progress.curses") as mock_curses:
            mock_curses.setupterm.side_effect = KeyboardInterrupt()
            with self.assertRaises(KeyboardInterrupt):
                TermControl(term_stream=mock_stream)

    def test_term_control_init_success(self):
        """Test successful TermControl initialization with mocked curses."""
        mock_stream = MagicMock()
        mock_stream.isatty.return_value = True

        with patch("mirrordiff.progress.curses") as mock_curses:
            mock_curses.tigetnum.side_effect = lambda x: 132 if x == "cols" else 24
            mock_curses.tigetstr.side_effect = lambda x: (
                b"seq$<2>" if x in ["cr", "setaf"] else None
            )
            mock_curses.tparm.return_value = b"\x1b[30m"

            tc = TermControl(term_stream=mock_stream)

        self.assertEqual(tc.columns, 132)
        self.assertEqual(tc.lines, 24)
        self.assertEqual(tc.width, 132)
        self.assertEqual(tc.BOL, "seq")
        self.assertEqual(tc.BLACK, "\x1b[30m")

    def test_term_control_never_disables_color(self):
        mock_stream = MagicMock()
        mock_stream.isatty.return_value = True

        with patch("mirrordiff.progress.curses") as mock_curses:
            mock_curses.tigetnum.return_value = 80
            mock_curses.tigetstr.return_value = b"seq"
            mock_curses.tparm.return_value = b"\x1b[31m"
            tc = TermControl(term_stream=mock_stream, color="never")

        self.assertEqual(tc.RED, "")
        self.assertEqual(tc.NORMAL, "")
        self.assertEqual(tc.BOL, "seq")


class TestFlushGuard(unittest.TestCase):
    def test_flush_guard_broken_pipe(self):
        """Test BrokenPipeError handling in flush guard."""
        mock_stream = MagicMock()
        mock_stream.flush.side_effect = BrokenPipeError()
        mock_stream.fileno.return_value = 10

        with patch("mirrordiff.progress.os") as mock_os:
            mock_os.open.return_value = 999
            mock_os.devnull = "/dev/null"
            mock_os.O_WRONLY = 1

            with self.assertRaises(SystemExit):
                _flush_with_broken_pipe_guard(mock_stream)

            mock_os.open.assert_called_with("/dev/null", 1)
            mock_os.dup2.assert_called_with(999, 10)
            mock_os.close.assert_called_with(999)

    def test_flush_guard_no_flush_attr(self):
        """Test flush guard with stream lacking flush method."""
        mock_stream = MagicMock()
        del mock_stream.flush
        _flush_with_broken_pipe_guard(mock_stream)


class TestThrobber(unittest.TestCase):
    def test_init_frames(self):
        """Test Throbber default frame selection."""
        stream = MagicMock()
        stream.encoding = "utf-8"
        t = Throbber("H", tc=_mock_term_control(stream))
        self.assertEqual(t.frames, WAVE_FRAMES)

        stream.encoding = "ascii"
        t_ascii = Throbber("H", tc=_mock_term_control(stream))
        self.assertEqual(t_ascii.frames, ASCII_FRAMES)
        self.assertEqual(t_ascii.nr_frames, 4)

    @patch("mirrordiff.progress.datetime")
    def test_lifecycle_flow(self, mock_dt):
        """Test the start -> throb -> end lifecycle with output verification."""
        stream = StringIO()
        t = Throbber("Scanning A", tc=_mock_term_control(stream))

        start_time = datetime(2024, 1, 1, 12, 0, 0)
        mock_dt.now.side_effect = [
            start_time,
            start_time + timedelta(microseconds=100001),
            start_time + timedelta(microseconds=150000),
            start_time + timedelta(microseconds=200002),
        ]

        t.start()
        self.assertEqual(stream.getvalue(), "<HIDE>")
        self.assertTrue(t.started)
        self.assertTrue(t.registered)

        stream.truncate(0)
        stream.seek(0)
        t.throb()
        self.assertEqual(stream.getvalue(), f"Scanning A: 1 files <G>{t.frames[0]}<N>\n")

        # Too soon for another frame
        stream.truncate(0)
        stream.seek(0)
        t.throb()
        self.assertEqual(stream.getvalue(), "")
        self.assertEqual(t.count, 2)

        t.throb()
        output = stream.getvalue()
        self.assertTrue(output.startswith("<BOL><UP><CE>"))
        self.assertIn(f"Scanning A: 3 files <G>{t.frames[1]}<N>", output)

        stream.truncate(0)
        stream.seek(0)
        t.end("3 files... done.")
        self.assertEqual(
            stream.getvalue(), "<BOL><UP><CE><SHOW>Scanning A: 3 files... done.\n"
        )
        self.assertFalse(t.started)
        self.assertFalse(t.registered)

    def test_reset_position_keeps_log_output(self):
        stream = StringIO()
        t = Throbber("H", tc=_mock_term_control(stream))
        t.start()
        t.first_update = False
        t.reset_position()
        stream.truncate(0)
        stream.seek(0)
        t.end("done")
        self.assertNotIn("<UP>", stream.getvalue())

    def test_validation(self):
        """Test state validation (throb before start)."""
        t = Throbber("H", tc=_mock_term_control(StringIO()))
        with self.assertRaisesRegex(ValueError, "called before start"):
            t.throb()
        with self.assertRaisesRegex(ValueError, r"Throbber.end\(\) called before start\(\)"):
            t.end("BadQuit!")


class TestSimpleThrobber(unittest.TestCase):
    @patch("mirrordiff.progress.datetime")
    def test_simple_flow(self, mock_dt):
        stream = StringIO()
        st = SimpleThrobber("Scanning B", term_stream=stream)

        start_time = datetime(2024, 1, 1, 12, 0, 0)
        mock_dt.now.side_effect = [
            start_time,
            start_time + timedelta(microseconds=100001),
            start_time + timedelta(microseconds=150000),
            start_time + timedelta(microseconds=200002),
        ]

        st.start()
        self.assertEqual(stream.getvalue(), "Scanning B: ..")
        st.throb()
        self.assertEqual(stream.getvalue(), "Scanning B: .. 1")
        st.throb()
        self.assertEqual(stream.getvalue(), "Scanning B: .. 1")
        st.throb()
        self.assertEqual(stream.getvalue(), "Scanning B: .. 1 3")
        st.end("3 files... done.")
        self.assertEqual(
            stream.getvalue(), "Scanning B: .. 1 3 3 files... done.\n"
        )


class TestNullThrobber(unittest.TestCase):
    def test_silent_operation(self):
        nt = NullThrobber("H")
        nt.start()
        nt.throb()
        self.assertEqual(nt.count, 1)
        nt.end("Msg")
        self.assertFalse(nt.started)


class TestThrobberFactory(unittest.TestCase):
    def test_get_throbber_quiet(self):
        t = ProgressFactory.get_throbber("H", quiet=True)
        self.assertIsInstance(t, NullThrobber)

    def test_get_throbber_simple(self):
        mock_stream = MagicMock()
        mock_stream.isatty.return_value = False
        t = ProgressFactory.get_throbber("H", term_stream=mock_stream)
        self.assertIsInstance(t, SimpleThrobber)
        self.assertIs(t.stream, mock_stream)

    def test_get_throbber_fancy(self):
        stream = MagicMock()
        stream.isatty.return_value = True
        stream.encoding = "utf8"
        mock_tc = _mock_term_control(stream)
        t = ProgressFactory.get_throbber("H", term_control=mock_tc)
        self.assertIsInstance(t, Throbber)
        self.assertIs(t.term, mock_tc)

    def test_throbber_factory_missing_isatty_attr(self):
        """Test factory with stream completely missing isatty attribute."""

        class DumbStream:
            pass

        t = ProgressFactory.get_throbber("H", term_stream=DumbStream())
        self.assertIsInstance(t, SimpleThrobber)
