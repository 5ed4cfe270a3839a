"""Report text builders for the historical and pending export layouts."""

HISTORICAL_HEADER = (
    "Data,Tipo,Código de Confirmação,Data de início,Data de término,Noites,"
    "Hóspede,Anúncio,Detalhes,Referência,Moeda,Valor,Pago,Taxa de serviço,"
    "Ganhos brutos"
)

PENDING_HEADER = (
    "Data,Tipo,Código de Confirmação,Data de início,Data de término,Noites,"
    "Hóspede,Anúncio,Detalhes,Moeda,Valor,Taxa de serviço,Ganhos brutos"
)


def historical_row(
    day: str,
    kind: str,
    *,
    listing: str = "",
    amount: str = "",
    paid: str = "",
    code: str = "",
    check_in: str = "",
    check_out: str = "",
    nights: str = "",
    guest: str = "",
    currency: str = "BRL",
    gross: str = "",
) -> str:
    fields = [
        day, kind, code, check_in, check_out, nights, guest, listing,
        "", "", currency, amount, paid, "", gross,
    ]
    return ",".join(_quote(f) for f in fields)


def pending_row(
    day: str,
    kind: str,
    *,
    listing: str = "",
    amount: str = "",
    code: str = "",
    check_in: str = "",
    check_out: str = "",
    nights: str = "",
    guest: str = "",
    currency: str = "BRL",
    gross: str = "",
) -> str:
    fields = [
        day, kind, code, check_in, check_out, nights, guest, listing,
        "", currency, amount, "", gross,
    ]
    return ",".join(_quote(f) for f in fields)


def build_report(header: str, *rows: str, newline: str = "\n") -> str:
    return newline.join([header, *rows]) + newline


def _quote(value: str) -> str:
    if "," in value or '"' in value:
        return '"' + value.replace('"', '""') + '"'
    return value
