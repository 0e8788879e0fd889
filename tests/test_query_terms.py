"""Tests for search term extraction."""

from retrieval.query_terms import extract_search_terms, identifier_parts, split_camel_case


class TestSplitCamelCase:
    """Test identifier splitting."""

    def test_camel_case(self):
        """Test lower camelCase with digits."""
        assert split_camel_case("getNeo4jDriver") == "Get Neo4j Driver"

    def test_acronyms(self):
        """Test that acronyms stay together."""
        assert split_camel_case("parseHTMLDocument") == "Parse HTML Document"

    def test_uppercase_unchanged(self):
        """Test that an all-caps word is kept."""
        assert split_camel_case("UPPERCASE") == "UPPERCASE"

    def test_snake_and_camel_parts(self):
        """Test mixed snake_case and camelCase identifiers."""
        assert identifier_parts("load_userConfig") == ["Load", "User", "Config"]


class TestExtractSearchTerms:
    """Test query term extraction."""

    def test_drops_stop_words_and_short_tokens(self):
        """Test that stop words and short words are removed."""
        terms = extract_search_terms("how does the retry logic work in it")

        assert terms == ["retry", "logic"]

    def test_identifiers_followed_by_parts(self):
        """Test that identifiers are kept verbatim before their parts."""
        terms = extract_search_terms("where is parseConfig called")

        assert terms[:3] == ["parseConfig", "Parse", "Config"]

    def test_case_insensitive_dedup(self):
        """Test that repeated words are kept once."""
        terms = extract_search_terms("Config config CONFIG loader")

        assert terms == ["Config", "loader"]

    def test_max_terms(self):
        """Test that the number of terms is capped."""
        terms = extract_search_terms("alpha bravo charlie delta echo foxtrot", max_terms=3)

        assert terms == ["alpha", "bravo", "charlie"]
