from lglob.scope import KnownLocals, ScopeTable


def build(rows, upvalues=()):
    return ScopeTable.from_metadata(rows, list(upvalues))


def test_slots_follow_liveness():
    scope = build([("a", 2, 5), ("b", 3, 5), ("c", 6, 9), ("d", 7, 9)])
    assert [(local.name, local.slot) for local in scope.locals] == [
        ("a", 0),
        ("b", 1),
        ("c", 0),
        ("d", 1),
    ]


def test_reused_slot_is_matched_by_instruction_index():
    scope = build([("a", 2, 5), ("b", 3, 5), ("c", 6, 9), ("d", 7, 9)])
    assert scope.match_local(0, 3).name == "a"
    assert scope.match_local(0, 8).name == "c"
    assert scope.match_local(1, 8).name == "d"
    assert scope.match_local(2, 3) is None
    assert scope.match_local(None, 3) is None


def test_local_becomes_live_at_its_assigning_instruction():
    scope = build([("json", 4, 10)])
    assert scope.match_local(0, 3).name == "json"
    assert scope.match_local(0, 2) is None
    assert scope.match_local(0, 11) is None


def test_block_start_ignores_start_bound():
    scope = build([("t", 5, 9)])
    assert scope.match_local(0, 1) is None
    assert scope.match_local(0, 1, at_block_start=True).name == "t"


def test_synthetic_locals_take_slots_but_never_match():
    scope = build([("(for index)", 2, 8), ("(for limit)", 2, 8), ("(for step)", 2, 8), ("i", 3, 7)])
    assert scope.locals[-1].slot == 3
    assert scope.match_local(0, 4) is None
    assert scope.match_local(3, 4).name == "i"


def test_rows_without_range_are_skipped():
    scope = build([("x", None, None), ("y", 1, 4)])
    assert [local.name for local in scope.locals] == ["y"]
    assert scope.locals[0].slot == 0


def test_promotion_is_shared_through_known_registry():
    known = KnownLocals()
    main = ScopeTable.from_metadata([("M", 2, 7)], [(0, "_ENV")], known=known)
    nested = ScopeTable.from_metadata([], [(0, "M")], function=1, known=known)
    local = main.match_local(0, 3)
    main.promote_to_known(local)
    assert local.is_known and local.reference_name == "M"
    assert nested.find_known_by_name("M") is local
    assert nested.match_upvalue(0).name == "M"


def test_promotion_with_alias():
    scope = build([("fmt", 3, 9)])
    local = scope.promote_to_known(scope.match_local(0, 3), "string.format")
    assert local.reference_name == "string.format"
    assert local.as_dict()["known"] is True
    assert len(scope.known) == 1
