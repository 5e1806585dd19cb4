from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Tuple

SITE_NAME = "Re:Code Frame"


@dataclass(frozen=True)
class NavLink:
    label: str
    anchor: str


NAV_LINKS: Tuple[NavLink, ...] = (
    NavLink("サービス特徴", "features"),
    NavLink("料金シミュレーション", "estimator"),
    NavLink("よくある質問", "faq"),
    NavLink("お問い合わせ", "contact"),
)

HERO_TITLE = "システム開発の概算を、その場で即時シミュレーション"
HERO_LEAD = "「いくらかかるか分からない」をゼロに。AI見積もりから実装・運用までワンストップで実現します。"
HERO_BADGES: Tuple[str, ...] = ("会員登録不要", "生成AI開発対応", "最短1ヶ月納品")

PROBLEM_TITLE = "こんなお悩みありませんか？"
PROBLEM_POINTS: Tuple[str, ...] = (
    "相場がわからず、社内の予算取りができない",
    "仕様書がないと見積もりを断られてしまう",
    "専門用語が難しくてエンジニアと会話が進まない",
    "制作会社によって提示金額がバラバラすぎる",
)
PROBLEM_CLOSING = "とにかくもっと簡単に概算を知りたい・・・"


@dataclass(frozen=True)
class SolutionStep:
    title: str
    description: str


SOLUTION_TITLE = "ご利用の流れ 簡単3ステップ"
SOLUTION_LEAD = "難しい知識は一切不要。誰でも直感的に利用できます。"
SOLUTION_STEPS: Tuple[SolutionStep, ...] = (
    SolutionStep(
        "要件を選択",
        "「Webシステム」「アプリ」など、選択肢からプロジェクト概要をポチポチ選ぶだけ。最短30秒。",
    ),
    SolutionStep(
        "AIによる即時見積もり",
        "独自のロジックとAIが、現在の市場相場に基づいた概算費用と開発スケジュールを瞬時に算出。",
    ),
    SolutionStep(
        "プロによる実装・開発",
        "概算に納得いただけたら、詳細な要件定義へ。経験豊富なエンジニアが実装までワンストップで担当。",
    ),
)


@dataclass(frozen=True)
class FaqItem:
    question: str
    answer: str


FAQ_TITLE = "よくあるご質問"
FAQ_LEAD = "システム開発に関する疑問や不安にお答えします。"
FAQ_ITEMS: Tuple[FaqItem, ...] = (
    FaqItem(
        "このシミュレーションで出た金額は確定ですか？",
        "いいえ、あくまでシステム開発の一般的な相場に基づいた概算シミュレーションです。"
        "お客様の具体的な要件（こだわりのデザイン、複雑な権限設定、既存システムとの連携など）を"
        "ヒアリングさせていただいた上で、正式な御見積書を無料で作成いたします。",
    ),
    FaqItem(
        "AI（ChatGPTなど）を活用したシステム開発は可能ですか？",
        "はい、得意分野です。OpenAI API等のLLM（大規模言語モデル）を組み込んだ業務効率化ツールや、"
        "社内データをAIが検索・回答するRAGシステムの構築実績が多数ございます。ぜひご相談ください。",
    ),
    FaqItem(
        "仕様書や要件定義書がなくても依頼できますか？",
        "問題ありません。弊社のプロジェクトマネージャーが、お客様の「やりたいこと」や「解決したい課題」を"
        "丁寧にヒアリングし、要件定義からサポートいたします。",
    ),
    FaqItem(
        "既存システムの改修やリニューアルも対応できますか？",
        "はい、対応可能です。「ソースコードはあるが仕様書がない」「作った担当者が退職して詳細が不明」といった"
        "レガシーシステムの解析・モダン化（リプレイス）も承っております。",
    ),
    FaqItem(
        "開発後の保守・運用サポートはありますか？",
        "はい、ございます。サーバーの監視、セキュリティアップデート、軽微な修正対応など、"
        "システムを安定稼働させるための月額保守プランをご用意しております。",
    ),
)


@dataclass
class FaqAccordion:
    """Open/closed flag per FAQ item; items toggle independently."""

    open_flags: List[bool] = field(default_factory=lambda: [False] * len(FAQ_ITEMS))

    def is_open(self, index: int) -> bool:
        return 0 <= index < len(self.open_flags) and self.open_flags[index]

    def toggle(self, index: int) -> bool:
        if not 0 <= index < len(self.open_flags):
            raise IndexError(f"no FAQ item at index {index}")
        self.open_flags[index] = not self.open_flags[index]
        return self.open_flags[index]


CONTACT_TITLE = "プロジェクトの具体化をプロフェッショナルがサポート"
CONTACT_LEAD = (
    "概算見積もり結果をもとに、より詳細な要件定義や実現可能性の調査を行います。"
    "「まだふんわりした状態」でも構いません。まずは専門家と話してみませんか？"
)
CONTACT_MESSAGE_PLACEHOLDER = "シミュレーション結果について詳しく聞きたい、など"


def footer_text(year: int) -> str:
    return f"© {year} {SITE_NAME}. All rights reserved."
