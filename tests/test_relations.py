from campadmin.core.relations import unwrap_relation, unwrap_relations


def test_unwrap_relation_shapes() -> None:
    assert unwrap_relation({"a": 1}) == {"a": 1}
    assert unwrap_relation([{"a": 1}]) == {"a": 1}
    assert unwrap_relation([]) is None
    assert unwrap_relation(None) is None
    assert unwrap_relation("oops") is None


def test_unwrap_relations_follows_nested_paths() -> None:
    row = {
        "id": "r1",
        "kid": [{"prenom": "Lou"}],
        "session": [{"start_date": "2024-07-01", "stage": [{"title": "Aventure"}], "center": []}],
    }

    normalized = unwrap_relations(row, ("kid", "session.stage", "session.center"))

    assert normalized["kid"] == {"prenom": "Lou"}
    assert normalized["session"]["stage"] == {"title": "Aventure"}
    assert normalized["session"]["center"] is None
    # The input row is left untouched.
    assert row["kid"] == [{"prenom": "Lou"}]


def test_unwrap_relations_ignores_missing_keys() -> None:
    assert unwrap_relations({"id": "r1"}, ("user",)) == {"id": "r1"}
