from utils.strings import bare_hostname, strip_decoration

def test_strip_quotes_and_trailing_comma():
    assert strip_decoration('"s3cr3t",') == "s3cr3t"

def test_strip_single_quotes_and_spaces():
    assert strip_decoration("  'pa55'  ") == "pa55"

def test_strip_empty():
    assert strip_decoration(None) == ""
    assert strip_decoration('""') == ""

def test_bare_hostname_plain():
    assert bare_hostname("campus.example.com") == "campus.example.com"

def test_bare_hostname_quoted_config_value():
    assert bare_hostname('"campus.example.com",') == "campus.example.com"

def test_bare_hostname_drops_scheme_path_and_port():
    assert bare_hostname("https://Campus.Example.com:8000/dashboard?x=1") == "campus.example.com"

def test_bare_hostname_rejects_single_label():
    assert bare_hostname("localhost") == ""

def test_bare_hostname_rejects_garbage():
    assert bare_hostname("not a host") == ""
    assert bare_hostname("") == ""
