import re
from pathlib import Path
from typing import Dict, List, Optional

# В deck-файле n* означает n значений по умолчанию
DEFAULTED_VALUE = -1.0e21

GRID_KEYWORDS = {
    "SWL", "SWCR", "SWU", "SWLPC",
    "SGL", "SGCR", "SGU", "SGLPC",
    "SOWCR", "SOGCR",
    "KRW", "KRWR", "KRO", "KRORW", "KRORG", "KROWR", "KROGR", "KRG", "KRGR",
    "PCW", "PCG",
    "SATNUM",
}

TABLE_KEYWORDS = {"SWOF": ("sw", "krw", "kro", "pcow"),
                  "SGOF": ("sg", "krg", "kro", "pcog")}


def _tokenize_deck(text: str) -> List[str]:
    """
    Разбивает текст ECL deck на токены.
    Удаляем комментарии (-- ...), запятые; "/" остаётся отдельным токеном.
    """
    cleaned = []
    for raw_line in text.splitlines():
        line = raw_line.split("--", 1)[0].strip()
        if not line:
            continue
        line = line.replace(",", " ")
        cleaned.append(line)
    merged = "\n".join(cleaned)
    return re.findall(r"[^\s/]+|/", merged)


def _is_keyword(tok: str) -> bool:
    return bool(re.match(r"^[A-Za-z][A-Za-z0-9_]*$", tok))


def _expand_token(tok: str) -> List[float]:
    """Раскрывает повторители вида 3*0.2 и 3* (значения по умолчанию)."""
    if "*" in tok:
        count_str, _, value_str = tok.partition("*")
        count = int(count_str)
        if count < 0:
            raise ValueError(f"Некорректный повторитель '{tok}'")
        value = float(value_str) if value_str else DEFAULTED_VALUE
        return [value] * count
    return [float(tok)]


def _collect_records(tokens: List[str], start_index: int, max_records: Optional[int] = None):
    """
    Собирает записи (блоки чисел, закрытые '/') до следующего ключевого слова.
    Возвращает список записей и индекс, на котором остановились.
    """
    records: List[List[float]] = []
    record: List[float] = []
    i = start_index
    while i < len(tokens):
        tok = tokens[i]
        if tok == "/":
            if not record and records:
                # двойной '/' закрывает секцию
                i += 1
                break
            records.append(record)
            record = []
            i += 1
            if max_records is not None and len(records) >= max_records:
                break
            continue
        if _is_keyword(tok):
            break
        try:
            record.extend(_expand_token(tok))
        except ValueError:
            raise ValueError(f"Нечисловой токен '{tok}' в секции данных") from None
        i += 1
    if record:
        records.append(record)
    return records, i


def _read_deck(path: str) -> str:
    deck_path = Path(path)
    if not deck_path.exists():
        raise FileNotFoundError(f"ECL deck '{path}' не найден")
    return deck_path.read_text(encoding="utf-8")


def grid_keywords_from_text(text: str, keywords=None) -> Dict[str, List[float]]:
    keyword_set = {kw.upper() for kw in (keywords or GRID_KEYWORDS)}
    tokens = _tokenize_deck(text)
    result: Dict[str, List[float]] = {}

    i = 0
    while i < len(tokens):
        tok = tokens[i].upper()
        if tok in keyword_set:
            records, i = _collect_records(tokens, i + 1, max_records=1)
            values = records[0] if records else []
            result.setdefault(tok, []).extend(values)
        else:
            i += 1
    return result


def parse_grid_keywords(path: str, keywords=None) -> Dict[str, List[float]]:
    """
    Читает поячеечные ключевые слова масштабирования (SWL, SWCR, KRW, ...)
    из deck-файла.  Возвращает словарь {keyword: [v1, v2, ...]}.
    """
    return grid_keywords_from_text(_read_deck(path), keywords)


def saturation_tables_from_text(text: str) -> Dict[str, List[Dict[str, List[float]]]]:
    tokens = _tokenize_deck(text)
    result: Dict[str, List[Dict[str, List[float]]]] = {}

    i = 0
    while i < len(tokens):
        tok = tokens[i].upper()
        if tok in TABLE_KEYWORDS:
            columns = TABLE_KEYWORDS[tok]
            records, i = _collect_records(tokens, i + 1)
            tables = result.setdefault(tok.lower(), [])
            for region, record in enumerate(records, start=1):
                if not record:
                    continue
                if len(record) % len(columns) != 0:
                    raise ValueError(
                        f"{tok} регион {region}: число значений {len(record)} "
                        f"не кратно {len(columns)}"
                    )
                rows = [record[k:k + len(columns)] for k in range(0, len(record), len(columns))]
                tables.append({col: [row[c] for row in rows] for c, col in enumerate(columns)})
        else:
            i += 1
    return result


def parse_saturation_tables(path: str) -> Dict[str, List[Dict[str, List[float]]]]:
    """
    Загружает таблицы SWOF и SGOF по регионам насыщенности:
      {
         'swof': [{'sw': [...], 'krw': [...], 'kro': [...], 'pcow': [...]}, ...],
         'sgof': [{'sg': [...], 'krg': [...], 'kro': [...], 'pcog': [...]}, ...]
      }
    """
    return saturation_tables_from_text(_read_deck(path))


def grid_config_from_deck(path: str, intehead: Optional[dict] = None) -> dict:
    """Конфигурация GridProperties (один глобальный грид) по deck-файлу."""
    keywords = parse_grid_keywords(path)
    sizes = {len(v) for v in keywords.values()}
    if not sizes:
        raise ValueError(f"В deck '{path}' нет ключевых слов масштабирования")
    if len(sizes) != 1:
        raise ValueError(
            f"В deck '{path}' ключевые слова имеют разную длину: "
            + ", ".join(f"{k}={len(v)}" for k, v in sorted(keywords.items()))
        )
    return {
        "grids": [{"name": "global", "num_cells": sizes.pop(), "keywords": keywords}],
        "intehead": intehead or {},
    }
