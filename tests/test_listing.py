from regvm.listing import render_listing
from regvm.parser import parse_program

def test_listing_resolves_literal_jumps():
    prog = parse_program("set a 1\nsnd a\njgz a -2\njnz a b\njgz 1 9")
    lines = render_listing(prog)
    assert lines[0] == "# 5 instructions"
    assert lines[1].startswith("0000  set a 1")
    assert "; channel" in lines[2]
    assert lines[3].endswith("; -> 0000")
    assert lines[4].endswith("; -> ?")
    assert lines[5].endswith("; -> exit")
