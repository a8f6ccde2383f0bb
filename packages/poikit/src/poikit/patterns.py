"""Pattern tables for rule-based POI extraction.

Each list is ordered: the first pattern that matches a line wins, and
the category table is scanned top to bottom.
"""

from __future__ import annotations

import re

PHONE_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"(?:TEL|Tel|tel|電話|☎)[：:\s]*([\d\-()（）]+)"),
    re.compile(r"(0\d{1,4}[\-ー]\d{1,4}[\-ー]\d{2,4})"),
    re.compile(r"(\d{2,4}-\d{2,4}-\d{3,4})"),
]

PREFECTURES: tuple[str, ...] = (
    "北海道",
    "青森県", "岩手県", "宮城県", "秋田県", "山形県", "福島県",
    "茨城県", "栃木県", "群馬県", "埼玉県", "千葉県", "東京都", "神奈川県",
    "新潟県", "富山県", "石川県", "福井県", "山梨県", "長野県",
    "岐阜県", "静岡県", "愛知県", "三重県",
    "滋賀県", "京都府", "大阪府", "兵庫県", "奈良県", "和歌山県",
    "鳥取県", "島根県", "岡山県", "広島県", "山口県",
    "徳島県", "香川県", "愛媛県", "高知県",
    "福岡県", "佐賀県", "長崎県", "熊本県", "大分県", "宮崎県", "鹿児島県",
    "沖縄県",
)

ADDRESS_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"(?:住所|所在地)[：:\s]*(.*)"),
    re.compile(r"(〒?\d{3}[\-ー]\d{4}.*)"),
    re.compile(r"^((?:" + "|".join(PREFECTURES) + r").+)"),
]

# Second OCR line of an address split in two: house number, floor, or a
# short town name followed by a block number.
ADDRESS_CONTINUATION_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"^[\d\-ー０-９]+"),
    re.compile(r"^F "),
    re.compile(r"階"),
    re.compile(r"^\D{1,8}[\d０-９]+[\-ー－‐][\d０-９]+"),
]

HOURS_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"(?:営業時間|OPEN|open|営業)[：:\s]*(.*)"),
    re.compile(r"(\d{1,2}[：:]\d{2}\s*[〜~\-ー]\s*\d{1,2}[：:]\d{2}.*)"),
]

PRICE_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"([¥￥]\s*[\d,]+\s*[〜~\-ー]\s*[¥￥]?\s*[\d,]+)"),
    re.compile(r"([\d,]+\s*円\s*[〜~\-ー]\s*[\d,]+\s*円)"),
]

CATEGORY_KEYWORDS: list[tuple[str, list[str]]] = [
    ("カレー店", ["カレー", "curry"]),
    ("ラーメン店", ["ラーメン", "らーめん", "拉麺"]),
    ("カフェ", ["カフェ", "cafe", "珈琲", "コーヒー"]),
    ("居酒屋", ["居酒屋", "酒場", "酒処"]),
    ("焼肉店", ["焼肉", "焼き肉", "yakiniku"]),
    ("寿司店", ["寿司", "鮨", "すし", "sushi"]),
    ("蕎麦店", ["蕎麦", "そば"]),
    ("うどん店", ["うどん"]),
    ("パン屋", ["ベーカリー", "パン", "bakery"]),
    ("レストラン", ["レストラン", "restaurant", "ダイニング"]),
    ("バー", ["バー", "bar"]),
    ("定食屋", ["定食"]),
]

# Lines carrying business details rather than the facility name.
INFO_KEYWORDS: tuple[str, ...] = (
    "定休日", "席数", "駐車場", "アクセス", "予約", "fax",
    "税込", "税別", "税抜", "飲み放題", "食べ放題", "コース",
    "ランチ", "ディナー", "モーニング",
    "www.", "http", "@", "instagram", "twitter", "facebook",
)

NUMERIC_LINE = re.compile(r"^[\d\-ー０-９]+$")

# Labelled lines used when a model answer is not JSON at all.
PLAIN_TEXT_PATTERNS: dict[str, list[re.Pattern[str]]] = {
    "name": [
        re.compile(r"施設名[：:]\s*(.+)", re.IGNORECASE),
        re.compile(r"店名[：:]\s*(.+)", re.IGNORECASE),
        re.compile(r"^\s*name[：:]\s*(.+)", re.IGNORECASE | re.MULTILINE),
        re.compile(r'"name"\s*:\s*"([^"]+)"', re.IGNORECASE),
    ],
    "address": [
        re.compile(r"住所[：:]\s*(.+)", re.IGNORECASE),
        re.compile(r'"address"\s*:\s*"([^"]+)"', re.IGNORECASE),
    ],
    "phone_number": [
        re.compile(r"電話[：:]\s*(.+)", re.IGNORECASE),
        re.compile(r"TEL[：:]\s*(.+)", re.IGNORECASE),
        re.compile(r'"phone"\s*:\s*"([^"]+)"', re.IGNORECASE),
    ],
}
