from taskpilot.tasks.scheduler import schedule, unresolved_dependencies


def titles(sub_tasks):
    return [st.title for st in sub_tasks]


def test_dependency_chain_runs_in_order(make_sub_task):
    sub_tasks = [
        make_sub_task("Write tests", ["Build API"]),
        make_sub_task("Design schema"),
        make_sub_task("Build API", ["Design schema"]),
    ]

    assert titles(schedule(sub_tasks)) == ["Design schema", "Build API", "Write tests"]


def test_chain_in_natural_order_is_kept(make_sub_task):
    sub_tasks = [
        make_sub_task("Design schema"),
        make_sub_task("Build API", ["Design schema"]),
        make_sub_task("Write tests", ["Build API"]),
    ]

    assert titles(schedule(sub_tasks)) == ["Design schema", "Build API", "Write tests"]


def test_independent_sub_tasks_ordered_by_priority(make_sub_task):
    low = make_sub_task("Low", priority=5)
    high = make_sub_task("High", priority=1)

    assert titles(schedule([low, high])) == ["High", "Low"]
    assert titles(schedule([high, low])) == ["High", "Low"]


def test_equal_priorities_keep_input_order(make_sub_task):
    sub_tasks = [make_sub_task(name) for name in ("a", "b", "c")]

    assert titles(schedule(sub_tasks)) == ["a", "b", "c"]


def test_ready_wave_sorted_by_priority_before_dependents(make_sub_task):
    sub_tasks = [
        make_sub_task("Report", ["Research"], priority=1),
        make_sub_task("Slides", priority=4),
        make_sub_task("Research", priority=2),
    ]

    assert titles(schedule(sub_tasks)) == ["Research", "Slides", "Report"]


def test_schedule_is_a_permutation(make_sub_task):
    sub_tasks = [
        make_sub_task("a", ["c"], priority=2),
        make_sub_task("b", priority=5),
        make_sub_task("c", priority=1),
        make_sub_task("d", ["a", "b"]),
    ]

    ordered = schedule(sub_tasks)

    assert sorted(map(id, ordered)) == sorted(map(id, sub_tasks))
    assert all(st.status.value == "pending" for st in ordered)


def test_missing_dependency_never_blocks(make_sub_task):
    sub_tasks = [
        make_sub_task("Deploy", ["Design schema"], priority=3),
        make_sub_task("Document", priority=4),
    ]

    assert titles(schedule(sub_tasks)) == ["Deploy", "Document"]
    assert unresolved_dependencies(sub_tasks) == {"Design schema"}


def test_cycle_falls_back_to_priority_order(make_sub_task):
    sub_tasks = [
        make_sub_task("Root", priority=4),
        make_sub_task("A", ["B"], priority=3),
        make_sub_task("B", ["A"], priority=1),
    ]

    ordered = schedule(sub_tasks)

    assert titles(ordered) == ["Root", "B", "A"]
    assert len(ordered) == 3


def test_schedule_is_idempotent(make_sub_task):
    sub_tasks = [
        make_sub_task("x", ["y"], priority=1),
        make_sub_task("y", priority=2),
        make_sub_task("z", priority=1),
    ]

    once = schedule(sub_tasks)

    assert schedule(once) == once


def test_empty_input():
    assert schedule([]) == []
