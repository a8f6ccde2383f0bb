"""Prompt templates sent to extractor backends.

Every template asks for a single JSON object with exactly the keys
``name, address, phone, hours, category, priceRange``; missing values
must be JSON ``null``.
"""

from __future__ import annotations

OUTPUT_SCHEMA = (
    '{"name": "施設名", "address": "住所", "phone": "電話番号", '
    '"hours": "営業時間", "category": "カテゴリ", "priceRange": "価格帯"}'
)

CLOUD_SYSTEM_PROMPT = f"""\
あなたは日本の飲食店・店舗・施設の情報を正確に抽出するアシスタントです。
画像またはOCRテキストから次のスポット情報を抽出し、JSONで返してください。

- name: 看板やロゴに書かれた正式な店名。ブランド名と支店名が分かれている場合は
  「ブランド名 支店名」の形で結合する（例: 「アパ社長カレー」+「横浜ベイタワー店」
  →「アパ社長カレー 横浜ベイタワー店」）。★や♪などの装飾文字は除く。
- address: 都道府県から番地・建物名までを1つに結合した住所。
- phone: ハイフン区切りの電話番号（例: 045-123-4567）。
- hours: 開店〜閉店時間。曜日で異なる場合はそれも含める。
- category: 施設の種類（例: カレー店、ラーメン店、カフェ、居酒屋、焼肉店、寿司店、
  パン屋、バー、定食屋、レストラン）。
- priceRange: 価格帯（例: ¥800〜¥1,500）。

出力は次の形式のJSONのみとし、説明文は付けないでください。
```json
{OUTPUT_SCHEMA}
```
読み取れない項目はnullにしてください。ただし店舗・施設名らしき文字列がある限り
nameは必ず埋めてください。"""

CLOUD_IMAGE_INSTRUCTION = "この画像に写っている店舗・施設のスポット情報をJSONで抽出してください。"

VISION_PROMPT = f"""\
この画像はレストランや店舗の看板・メニュー・チラシの写真です。
スポット情報を抽出し、次の形式のJSONのみを出力してください。
{OUTPUT_SCHEMA}

- 見つからない項目はnull
- 施設名はブランド名と支店名を結合した完全な名前にする
- 住所は都道府県から番地まで結合する
- テキストの断片から施設の種類を推論してcategoryを設定する"""

OCR_CORRECTION_PROMPT = """\
以下は店舗の看板やメニューからOCRで読み取ったテキストです。
OCRの誤認識を修正してください。特に次の点に注意してください。
- 電話番号の数字の誤り（0とO、1とI/lなど）
- 店名・住所の誤字
- 営業時間と価格の表記ゆれ
行の順序は変えず、修正後のテキストのみを出力してください。

入力テキスト:
{ocr_text}"""

GEMMA_TURN_TEMPLATE = "<start_of_turn>user\n{prompt}<end_of_turn>\n<start_of_turn>model\n"


def build_text_prompt(ocr_text: str) -> str:
    """Instruction template plus the OCR text verbatim."""
    return f"""\
以下は飲食店や店舗の看板・メニュー・チラシの写真からOCRで読み取ったテキストです。
このテキストからスポット情報を推論し、JSON形式で出力してください。

注意:
- OCRは看板の文字を行ごとに分割します。複数行にまたがる情報は結合してください。
  例: 「アパ社長カレー」「横浜ベイタワー店」→ name は「アパ社長カレー 横浜ベイタワー店」
  例: 「東京都港区」「六本木1-2-3」→ address は「東京都港区六本木1-2-3」
- 0とO、1とIやlなどOCRの誤認識を考慮して修正してください。
- 電話番号はハイフン区切りで出力してください。
- 見つからない項目はnullにしてください。

OCRテキスト:
{ocr_text}

出力形式（JSONのみ、説明不要）:
{OUTPUT_SCHEMA}"""


def build_cloud_text_message(ocr_text: str) -> str:
    """User turn for the cloud backend; the system prompt carries the rules."""
    return f"以下はOCRで読み取ったテキストです。スポット情報を抽出してJSONで出力してください。\n\nOCRテキスト:\n{ocr_text}"


def build_local_prompt(ocr_text: str) -> str:
    """Text prompt wrapped in the Gemma instruct chat template."""
    return GEMMA_TURN_TEMPLATE.format(prompt=build_text_prompt(ocr_text))


def build_correction_prompt(ocr_text: str) -> str:
    return OCR_CORRECTION_PROMPT.format(ocr_text=ocr_text)
