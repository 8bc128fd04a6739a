import pytest

from dbdocs.options import pick_option


@pytest.mark.parametrize(
    "args, opts, want, want_remains",
    [
        ([], [], "", []),
        (["-a", "-b", "B", "-c"], ["-b"], "B", ["-a", "-c"]),
        (["-a", "-b=B", "-c"], ["-b"], "B", ["-a", "-c"]),
        (["-a", "-b=B", "-c"], ["-b", "--bbb"], "B", ["-a", "-c"]),
        (["-a", "-b=B", "-c"], ["-d"], "", ["-a", "-b=B", "-c"]),
        (["-b=B"], ["-b"], "B", []),
        (["-b", "B"], ["-b"], "B", []),
    ],
)
def test_pick_option(args, opts, want, want_remains):
    got, remains = pick_option(args, opts)
    assert got == want
    assert remains == want_remains


def test_pick_option_does_not_modify_input():
    args = ["-a", "-b", "B"]
    pick_option(args, ["-b"])
    assert args == ["-a", "-b", "B"]


def test_pick_option_missing_value_raises():
    with pytest.raises(ValueError, match="-b"):
        pick_option(["-a", "-b"], ["-b"])