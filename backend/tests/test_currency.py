from app.services.currency_service import CurrencyCode, CurrencyData, get_currency_data


class TestCurrencyCode:
    def test_currency_code_is_str_enum(self):
        """Test CurrencyCode members are strings."""
        assert isinstance(CurrencyCode.USD, str)
        assert CurrencyCode.USD == "USD"
        assert CurrencyCode.BTC.value == "BTC"

    def test_all_values_are_three_letter_codes(self):
        """Test all currency codes are 3-letter uppercase strings."""
        for code in CurrencyCode:
            assert len(code.value) == 3
            assert code.value == code.value.upper()
            assert code.value.isalpha()

    def test_name_matches_value(self):
        for code in CurrencyCode:
            assert code.name == code.value


class TestGetCurrencyData:
    def test_known_code(self):
        assert get_currency_data("USD") == CurrencyData(code="USD", name="US Dollar", divisibility=2)

    def test_case_insensitive(self):
        data = get_currency_data(" eur ")
        assert data is not None
        assert data.code == "EUR"

    def test_divisibility_exceptions(self):
        assert get_currency_data("BTC").divisibility == 8
        assert get_currency_data("JPY").divisibility == 0
        assert get_currency_data("KWD").divisibility == 3

    def test_every_code_resolves(self):
        for code in CurrencyCode:
            data = get_currency_data(code.value)
            assert data is not None
            assert data.name

    def test_unknown_code(self):
        assert get_currency_data("XYZ") is None

    def test_empty_code(self):
        assert get_currency_data("") is None
        assert get_currency_data(None) is None
