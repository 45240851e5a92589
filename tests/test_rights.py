from calfeed.feed.rights import expand_access_codes, replace_all_users, unique_codes


def test_group_codes_gain_key_variant():
    assert expand_access_codes(["U1", "SG4", "DR2"]) == ["U1", "SG4_K", "SG4", "DR2"]


def test_expanded_codes_are_unique_and_ordered():
    assert expand_access_codes(["SG4", "U1", "SG4", "SG4_K"]) == ["SG4_K", "SG4", "U1"]


def test_all_users_replaced_everywhere():
    assert replace_all_users(["UA", "U1", "UA", "G2"]) == ["G2", "U1"]


def test_unique_codes_keeps_first_occurrence():
    assert unique_codes(["b", "a", "b"]) == ["b", "a"]
