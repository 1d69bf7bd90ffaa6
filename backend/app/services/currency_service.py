"""Currency lookup used to validate payment request and invoice currencies."""

from dataclasses import dataclass
from enum import Enum


class CurrencyCode(str, Enum):
    """Supported currency codes (ISO 4217 plus BTC)."""

    AED = "AED"
    ARS = "ARS"
    AUD = "AUD"
    BRL = "BRL"
    BTC = "BTC"
    CAD = "CAD"
    CHF = "CHF"
    CLP = "CLP"
    CNY = "CNY"
    COP = "COP"
    CZK = "CZK"
    DKK = "DKK"
    EUR = "EUR"
    GBP = "GBP"
    HKD = "HKD"
    HUF = "HUF"
    IDR = "IDR"
    ILS = "ILS"
    INR = "INR"
    ISK = "ISK"
    JPY = "JPY"
    KES = "KES"
    KRW = "KRW"
    KWD = "KWD"
    MXN = "MXN"
    MYR = "MYR"
    NGN = "NGN"
    NOK = "NOK"
    NZD = "NZD"
    PHP = "PHP"
    PLN = "PLN"
    RON = "RON"
    SAR = "SAR"
    SEK = "SEK"
    SGD = "SGD"
    THB = "THB"
    TRY = "TRY"
    TWD = "TWD"
    UAH = "UAH"
    USD = "USD"
    VND = "VND"
    ZAR = "ZAR"


@dataclass(frozen=True)
class CurrencyData:
    code: str
    name: str
    divisibility: int


_NAMES: dict[CurrencyCode, str] = {
    CurrencyCode.AED: "UAE Dirham",
    CurrencyCode.ARS: "Argentine Peso",
    CurrencyCode.AUD: "Australian Dollar",
    CurrencyCode.BRL: "Brazilian Real",
    CurrencyCode.BTC: "Bitcoin",
    CurrencyCode.CAD: "Canadian Dollar",
    CurrencyCode.CHF: "Swiss Franc",
    CurrencyCode.CLP: "Chilean Peso",
    CurrencyCode.CNY: "Yuan Renminbi",
    CurrencyCode.COP: "Colombian Peso",
    CurrencyCode.CZK: "Czech Koruna",
    CurrencyCode.DKK: "Danish Krone",
    CurrencyCode.EUR: "Euro",
    CurrencyCode.GBP: "Pound Sterling",
    CurrencyCode.HKD: "Hong Kong Dollar",
    CurrencyCode.HUF: "Forint",
    CurrencyCode.IDR: "Rupiah",
    CurrencyCode.ILS: "New Israeli Sheqel",
    CurrencyCode.INR: "Indian Rupee",
    CurrencyCode.ISK: "Iceland Krona",
    CurrencyCode.JPY: "Yen",
    CurrencyCode.KES: "Kenyan Shilling",
    CurrencyCode.KRW: "Won",
    CurrencyCode.KWD: "Kuwaiti Dinar",
    CurrencyCode.MXN: "Mexican Peso",
    CurrencyCode.MYR: "Malaysian Ringgit",
    CurrencyCode.NGN: "Naira",
    CurrencyCode.NOK: "Norwegian Krone",
    CurrencyCode.NZD: "New Zealand Dollar",
    CurrencyCode.PHP: "Philippine Peso",
    CurrencyCode.PLN: "Zloty",
    CurrencyCode.RON: "Romanian Leu",
    CurrencyCode.SAR: "Saudi Riyal",
    CurrencyCode.SEK: "Swedish Krona",
    CurrencyCode.SGD: "Singapore Dollar",
    CurrencyCode.THB: "Baht",
    CurrencyCode.TRY: "Turkish Lira",
    CurrencyCode.TWD: "New Taiwan Dollar",
    CurrencyCode.UAH: "Hryvnia",
    CurrencyCode.USD: "US Dollar",
    CurrencyCode.VND: "Dong",
    CurrencyCode.ZAR: "Rand",
}

# Minor units differ from the usual 2 decimals for these codes
_DIVISIBILITY: dict[CurrencyCode, int] = {
    CurrencyCode.BTC: 8,
    CurrencyCode.CLP: 0,
    CurrencyCode.ISK: 0,
    CurrencyCode.JPY: 0,
    CurrencyCode.KRW: 0,
    CurrencyCode.KWD: 3,
    CurrencyCode.VND: 0,
}


def get_currency_data(code: str | None) -> CurrencyData | None:
    """Resolve a currency code (case-insensitive). Returns None when unknown."""
    if not code:
        return None
    try:
        currency = CurrencyCode(code.strip().upper())
    except ValueError:
        return None
    return CurrencyData(
        code=currency.value,
        name=_NAMES[currency],
        divisibility=_DIVISIBILITY.get(currency, 2),
    )
