import io

import pytest

from fancontrol.bruteforce import BruteforceOptions, Bruteforcer, expand_ints, main
from fancontrol.ec import DummyController


def test_expand_single_values():
    assert expand_ints("1,5,9") == [1, 5, 9]


def test_expand_range():
    assert expand_ints("3-6") == [3, 4, 5, 6]


def test_expand_mixed_and_trailing_comma():
    assert expand_ints("0x10,1-2,") == [16, 1, 2]


def test_expand_empty_string():
    assert expand_ints("") == []


@pytest.mark.parametrize("text", ["1,,2", "-5", "1-", "256", "abc", "1-2-3"])
def test_expand_invalid(text):
    with pytest.raises(ValueError, match="Invalid number"):
        expand_ints(text)


def test_expand_reversed_range():
    with pytest.raises(ValueError, match="larger than"):
        expand_ints("7-3")


@pytest.fixture
def prepared():
    ec = DummyController()
    ec.open()
    ec.write_byte(10, 3)
    ec.write_byte(20, 7)
    ec.write_byte(21, 8)
    options = BruteforceOptions(
        fan_register=10,
        fan_values=[1, 2],
        bruteforce_registers=[20, 21],
        bruteforce_values=[5, 6],
        sleep=0.25,
    )
    return ec, options


def test_run_restores_registers_and_reports(prepared):
    ec, options = prepared
    sleeps = []
    out = io.StringIO()
    runner = Bruteforcer(ec, options, sleeps.append, out)
    runner.run()

    assert ec.read_byte(20) == 7
    assert ec.read_byte(21) == 8
    assert ec.read_byte(10) == 2
    assert sleeps == [0.25] * 8
    lines = out.getvalue().splitlines()
    assert len(lines) == 8
    assert lines[0] == "Register = 20 (14), Value = 5 (5), FanSpeedValue = 1 (1)"


def test_reset_restores_fan_register(prepared):
    ec, options = prepared
    out = io.StringIO()
    runner = Bruteforcer(ec, options, lambda s: None, out)
    runner.run()
    runner.reset()
    assert ec.read_byte(10) == 3
    assert ec.read_byte(21) == 8
    assert "Resetting embedded controller" in out.getvalue()


def test_reset_before_run_writes_nothing(prepared):
    ec, options = prepared
    Bruteforcer(ec, options, lambda s: None, io.StringIO()).reset()
    assert ec.read_byte(10) == 3
    assert ec.read_byte(20) == 7


def test_main_requires_fan_register(capsys):
    assert main(["-F", "1", "-b", "2", "-v", "3"]) == 2
    assert "Option -f|--fan-register not given" in capsys.readouterr().err


def test_main_requires_bruteforce_values(capsys):
    assert main(["-f", "1", "-F", "1", "-b", "2"]) == 2
    assert "-v|--bruteforce-values" in capsys.readouterr().err


def test_main_rejects_large_fan_register(capsys):
    assert main(["-f", "300"]) == 2
    assert "value too large" in capsys.readouterr().err


def test_main_rejects_bad_sleep(capsys):
    assert main(["-s", "0.01"]) == 2
    assert "-s|--sleep" in capsys.readouterr().err


def test_main_rejects_unknown_controller(capsys):
    assert main(["-e", "nonsense"]) == 2
    assert "Invalid value: nonsense" in capsys.readouterr().err


def test_main_prints_expanded_values(capsys):
    assert main(["-F", "1-3"]) == 2
    assert "Fan-Values: 1,2,3," in capsys.readouterr().out