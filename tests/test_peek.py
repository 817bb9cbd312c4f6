import re

from scripts.peek import main

VCARD_21_CHARSET = (
    "BEGIN:VCARD\r\n"
    "VERSION:2.1\r\n"
    "N;CHARSET=ISO-8859-1:Dör;Jöhn;;;\r\n"
    "FN;CHARSET=ISO-8859-1:Jöhn Dör\r\n"
    "TEL;HOME: (555) 010-2000 \r\n"
    "EMAIL;INTERNET:john@example.com\r\n"
    "END:VCARD\r\n"
)


def test_peek_builtin_sample(capsys):
    main([])
    out = capsys.readouterr().out
    assert "Parsed sample.ics as tasks:" in out
    assert "'summary': 'Buy milk'" in out
    assert re.search(r"^UID:peek-1\r?$", out, re.M)


def test_peek_file(tmp_path, capsys):
    path = tmp_path / "old.vcf"
    path.write_bytes(VCARD_21_CHARSET.encode("utf-8"))
    main([str(path)])
    out = capsys.readouterr().out
    assert "Parsed old.vcf as vcard:" in out
    assert "BEGIN:VCARD" in out and "END:VCARD" in out and "VERSION:4.0" in out
    assert re.search(r"^UID:urn:uuid:[0-9a-fA-F-]{36}\r?$", out, re.M)
