import pytest

from skipguard.errors import InvalidInputs
from skipguard.model import GLOBAL_FILTER, ConcurrentSkipping, Inputs, PathFilter


def test_defaults():
    inputs = Inputs.from_action_inputs({})
    assert inputs.paths == []
    assert inputs.paths_ignore == []
    assert inputs.paths_filter == {}
    assert inputs.do_not_skip == ["workflow_dispatch", "schedule"]
    assert inputs.concurrent_skipping == ConcurrentSkipping.never
    assert not inputs.cancel_others
    assert inputs.skip_after_successful_duplicate
    assert not inputs.has_path_filters
    assert inputs.path_filters() == {}


def test_empty_strings_fall_back_to_defaults():
    inputs = Inputs.from_action_inputs(
        {"paths": "", "do_not_skip": "", "paths_filter": "", "cancel_others": ""}
    )
    assert inputs == Inputs()


def test_parse_all_inputs():
    inputs = Inputs.from_action_inputs(
        {
            "paths": '["src/**"]',
            "paths_ignore": '["**/*.md"]',
            "paths_filter": (
                "frontend:\n"
                "  paths: ['web/**']\n"
                "  backtracking: 3\n"
                "backend:\n"
                "  paths_ignore: ['web/**']\n"
                "  backtracking: false\n"
            ),
            "do_not_skip": '["pull_request", "release"]',
            "concurrent_skipping": "same_content_newer",
            "cancel_others": "true",
            "skip_after_successful_duplicate": "FALSE",
        }
    )
    assert inputs.paths == ["src/**"]
    assert inputs.paths_ignore == ["**/*.md"]
    assert inputs.paths_filter["frontend"].backtracking == 3
    assert inputs.paths_filter["backend"].backtracking is False
    assert inputs.paths_filter["backend"].paths_ignore == ["web/**"]
    assert inputs.do_not_skip == ["pull_request", "release"]
    assert inputs.concurrent_skipping == ConcurrentSkipping.same_content_newer
    assert inputs.cancel_others
    assert not inputs.skip_after_successful_duplicate

    filters = inputs.path_filters()
    assert set(filters) == {"frontend", "backend", GLOBAL_FILTER}
    assert filters[GLOBAL_FILTER].backtracking is True


@pytest.mark.parametrize(
    "raw, name",
    [
        ({"paths": "[src/**"}, "paths"),
        ({"paths": '"src/**"'}, "paths"),
        ({"paths_filter": "a: [b"}, "paths_filter"),
        ({"paths_filter": "a:\n  unknown: 1\n"}, "paths_filter"),
        ({"paths_filter": "a:\n  backtracking: -1\n"}, "paths_filter"),
        ({"paths_filter": "global:\n  paths: ['x']\n"}, "paths_filter"),
        ({"do_not_skip": '["nope"]'}, "do_not_skip"),
        ({"concurrent_skipping": "sometimes"}, "concurrent_skipping"),
        ({"cancel_others": "yes"}, "cancel_others"),
    ],
)
def test_invalid_inputs(raw, name):
    with pytest.raises(InvalidInputs) as excinfo:
        Inputs.from_action_inputs(raw)
    assert excinfo.value.name == name
    assert name in str(excinfo.value)


def test_backtracking_bound():
    unlimited = PathFilter(paths=["a"])
    assert not any(unlimited.bound_reached(d) for d in range(10))

    disabled = PathFilter(paths=["a"], backtracking=False)
    assert not disabled.bound_reached(0)
    assert disabled.bound_reached(1)

    # an integer bound of 1 is not the same as True
    one = PathFilter(paths=["a"], backtracking=1)
    assert one.bound_reached(1)
    assert not one.bound_reached(0)

    three = PathFilter(paths=["a"], backtracking=3)
    assert [d for d in range(6) if three.bound_reached(d)] == [3]


def test_path_filter_accepts_dashed_alias():
    f = PathFilter.model_validate({"paths-ignore": ["docs/**"]})
    assert f.paths_ignore == ["docs/**"]
    assert f.paths == []
    assert f.backtracking is True
