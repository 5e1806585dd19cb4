from __future__ import annotations

import json
import logging
import os
from datetime import datetime
from typing import MutableMapping, Optional

import streamlit as st
import streamlit.components.v1 as components
from dotenv import load_dotenv

import site_content
from ai_proposal import ProposalConfig, ProposalGenerator
from estimate_engine import EstimateResult
from estimate_pdf import build_estimate_sheet, make_estimate_pdf_bytes
from estimator_wizard import STEP_TITLES, EstimatorWizard, ProposalPending, WizardStep
from handoff import ContactDraft, EstimationRecord, format_jpy
from pricing_catalog import CatalogError, PricingCatalog, load_default_catalog
from site_logging import setup_logging

logger = logging.getLogger(__name__)


def _read_secret_or_env_str(key: str) -> str:
    """
    Read a configuration value from Streamlit Secrets (preferred) or environment variables.

    Returns a stripped string; returns "" when missing.
    """
    val: object = ""
    try:
        # `st.secrets` raises when no secrets.toml exists at all.
        val = st.secrets.get(key, "")  # type: ignore[attr-defined]
    except Exception:
        val = ""
    if not val:
        val = os.environ.get(key, "")
    if isinstance(val, str):
        return val.strip()
    return str(val).strip() if val is not None else ""


@st.cache_resource
def _load_catalog() -> PricingCatalog:
    return load_default_catalog()


def _proposal_generator(catalog: PricingCatalog) -> ProposalGenerator:
    return ProposalGenerator(ProposalConfig.from_env(_read_secret_or_env_str), catalog)


def _init_state(catalog: PricingCatalog, session: Optional[MutableMapping[str, object]] = None) -> None:
    session = st.session_state if session is None else session
    if not isinstance(session.get("wizard"), EstimatorWizard):
        session["wizard"] = EstimatorWizard(catalog)
    if not isinstance(session.get("contact_draft"), ContactDraft):
        session["contact_draft"] = ContactDraft()
    if not isinstance(session.get("faq"), site_content.FaqAccordion):
        session["faq"] = site_content.FaqAccordion()
    session.setdefault("estimation_record", None)


def _wizard(session: Optional[MutableMapping[str, object]] = None) -> EstimatorWizard:
    session = st.session_state if session is None else session
    wizard = session.get("wizard")
    if not isinstance(wizard, EstimatorWizard):
        raise RuntimeError("wizard state not initialised")
    return wizard


def _reset_estimator(session: Optional[MutableMapping[str, object]] = None) -> None:
    # The handed-off record belongs to the contact section and survives a reset.
    session = st.session_state if session is None else session
    _wizard(session).reset()
    session.pop("_scroll_to_contact", None)


def _request_proposal(
    generator: ProposalGenerator, session: Optional[MutableMapping[str, object]] = None
) -> bool:
    """
    Run one proposal request for the current selection.

    Returns False when a request is already pending/finished or when the result
    arrived for a session that has since been reset.
    """
    wizard = _wizard(session)
    ticket = wizard.begin_proposal()
    if ticket is None:
        return False
    state = wizard.state
    proposal = generator.generate(state)
    applied = wizard.complete_proposal(ticket, proposal)
    if not applied:
        logger.info("Discarding proposal for ticket %s: wizard was reset while it was pending", ticket)
    return applied


def _handoff_to_contact(session: Optional[MutableMapping[str, object]] = None) -> EstimationRecord:
    session = st.session_state if session is None else session
    record = _wizard(session).build_record()
    session["estimation_record"] = record
    session["_scroll_to_contact"] = True
    return record


def _sync_contact_draft(catalog: PricingCatalog, session: Optional[MutableMapping[str, object]] = None) -> bool:
    """
    Push a newly handed-off record into the contact draft and the message widget.

    Must run before the contact form widgets are created in this rerun.
    """
    session = st.session_state if session is None else session
    draft = session.get("contact_draft")
    record = session.get("estimation_record")
    if not isinstance(draft, ContactDraft) or not isinstance(record, EstimationRecord):
        return False
    if not draft.apply_record(record, catalog):
        return False
    session["contact_message"] = draft.message
    return True


def _estimate_text_summary(record: EstimationRecord, estimate: EstimateResult, catalog: PricingCatalog) -> str:
    state = record.state
    lines = [
        f"{site_content.SITE_NAME} - 概算見積もり",
        f"開発タイプ: {catalog.category_label(state.category)}",
        f"規模感: {catalog.scale_label(state.scale)}",
        f"デザイン対応: {'素材支給あり' if state.design_provided else '制作依頼 (追加費)'}",
        "",
        "明細:",
    ]
    for li in estimate.line_items:
        lines.append(f"- {li.description}: {format_jpy(li.amount_jpy)}")
    lines.append("")
    lines.append(f"合計: {format_jpy(record.total_jpy)}~")
    if estimate.monthly_maintenance_jpy:
        lines.append(f"月額保守費用: {format_jpy(estimate.monthly_maintenance_jpy)} / 月")
    if record.proposal is not None:
        lines.append("")
        lines.append("AI提案書ドラフト:")
        lines.append(record.proposal.summary)
        if record.proposal.recommended_stack:
            lines.append("推奨技術スタック: " + ", ".join(record.proposal.recommended_stack))
        if record.proposal.timeline_estimation:
            lines.append("想定スケジュール: " + record.proposal.timeline_estimation)
    if estimate.notes:
        lines.append("")
        for n in estimate.notes:
            lines.append(f"* {n}")
    return "\n".join(lines) + "\n"


def _estimate_export_payload(record: EstimationRecord, estimate: EstimateResult) -> dict[str, object]:
    payload = record.to_dict()
    payload["lineItems"] = [
        {"code": li.code, "description": li.description, "amount": li.amount_jpy} for li in estimate.line_items
    ]
    payload["monthlyMaintenance"] = estimate.monthly_maintenance_jpy
    payload["generatedAt"] = datetime.now().isoformat(timespec="seconds")
    return payload


def _anchor(anchor_id: str) -> None:
    st.markdown(f'<div id="{anchor_id}"></div>', unsafe_allow_html=True)


def _render_header() -> None:
    left, right = st.columns([2, 5])
    left.markdown(f"### {site_content.SITE_NAME}")
    links = " ・ ".join(f"[{link.label}](#{link.anchor})" for link in site_content.NAV_LINKS)
    right.markdown(links)


def _render_hero() -> None:
    _anchor("features")
    st.title(site_content.HERO_TITLE)
    st.write(site_content.HERO_LEAD)
    st.markdown("[無料で見積もりを作成](#estimator) ・ [エンジニアに相談](#contact)")
    st.caption(" / ".join(site_content.HERO_BADGES))


def _render_problem() -> None:
    st.header(site_content.PROBLEM_TITLE)
    for point in site_content.PROBLEM_POINTS:
        st.markdown(f"- {point}")
    st.write(site_content.PROBLEM_CLOSING)


def _render_solution() -> None:
    st.header(site_content.SOLUTION_TITLE)
    st.caption(site_content.SOLUTION_LEAD)
    cols = st.columns(len(site_content.SOLUTION_STEPS))
    for idx, (col, step) in enumerate(zip(cols, site_content.SOLUTION_STEPS), start=1):
        with col:
            st.subheader(f"{idx}. {step.title}")
            st.write(step.description)


def _render_progress(wizard: EstimatorWizard) -> None:
    cols = st.columns(len(WizardStep))
    for col, step in zip(cols, WizardStep):
        reachable = step <= wizard.step
        marker = "✅" if step < wizard.step else "🔷" if step == wizard.step else "⬜"
        if col.button(
            f"{marker} {step.value}. {STEP_TITLES[step]}",
            key=f"progress_{step.value}",
            disabled=not reachable,
            use_container_width=True,
        ):
            wizard.jump_to(step)
            st.rerun()
    st.progress((wizard.step - 1) / (len(WizardStep) - 1))


def _render_category_step(wizard: EstimatorWizard, catalog: PricingCatalog) -> None:
    st.subheader("どのようなシステムを作りたいですか？")
    cols = st.columns(3)
    for idx, category in enumerate(catalog.categories):
        with cols[idx % 3]:
            selected = wizard.state.category is category.id
            if st.button(
                f"{'✅ ' if selected else ''}{category.label}",
                key=f"category_{category.id.value}",
                type="primary" if selected else "secondary",
                use_container_width=True,
            ):
                wizard.select_category(category.id)
                st.rerun()
            st.caption(category.description)


def _render_features_step(wizard: EstimatorWizard, catalog: PricingCatalog) -> None:
    st.subheader("必要な機能はありますか？")
    st.caption("複数選択可能です。迷ったらそのままでも構いません。")
    cols = st.columns(3)
    for idx, feature in enumerate(catalog.features):
        with cols[idx % 3]:
            selected = feature.id in wizard.state.selected_features
            if st.button(
                f"{'☑' if selected else '☐'} {feature.label} (+{format_jpy(feature.price_jpy)})",
                key=f"feature_{feature.id}",
                use_container_width=True,
            ):
                wizard.toggle_feature(feature.id)
                st.rerun()
            st.caption(feature.description)


def _render_scale_step(wizard: EstimatorWizard, catalog: PricingCatalog) -> None:
    st.subheader("規模感とデザイン")
    st.caption("プロジェクトの規模（ページ数）と、デザイン素材の有無を選択してください。")

    st.markdown("**システム規模・ページ数**")
    cols = st.columns(len(catalog.scales))
    for col, scale in zip(cols, catalog.scales):
        with col:
            selected = wizard.state.scale is scale.id
            if st.button(
                f"{'✅ ' if selected else ''}{scale.label}",
                key=f"scale_{scale.id.value}",
                type="primary" if selected else "secondary",
                use_container_width=True,
            ):
                wizard.select_scale(scale.id)
                st.rerun()
            st.caption(f"{scale.description} / コスト係数: x{scale.multiplier}")

    st.markdown("**デザイン・素材の準備**")
    provided = wizard.state.design_provided
    left, right = st.columns(2)
    if left.button(
        f"{'✅ ' if provided else ''}素材支給あり",
        key="design_provided",
        help="ガイドラインや既存デザインを使用",
        use_container_width=True,
    ):
        wizard.set_design_provided(True)
        st.rerun()
    if right.button(
        f"{'✅ ' if not provided else ''}デザイン制作依頼 (+{format_jpy(catalog.design_from_scratch_jpy)})",
        key="design_from_scratch",
        help="ゼロからデザインを作成",
        use_container_width=True,
    ):
        wizard.set_design_provided(False)
        st.rerun()

    st.markdown("**公開後の保守・運用**")
    wants = wizard.state.wants_maintenance
    if st.button(
        f"{'☑' if wants else '☐'} 保守サポート希望 (+{format_jpy(catalog.monthly_maintenance_jpy)}/月)",
        key="maintenance",
        help="サーバー監視、セキュリティ更新等",
    ):
        wizard.set_maintenance(not wants)
        st.rerun()


def _render_downloads(wizard: EstimatorWizard, estimate: EstimateResult, catalog: PricingCatalog) -> None:
    record = wizard.build_record()
    with st.expander("見積もりをダウンロード", expanded=False):
        st.download_button(
            "テキスト (TXT)",
            data=_estimate_text_summary(record, estimate, catalog),
            file_name="estimate.txt",
            mime="text/plain",
            use_container_width=True,
        )
        st.download_button(
            "データ (JSON)",
            data=json.dumps(_estimate_export_payload(record, estimate), ensure_ascii=False, indent=2),
            file_name="estimate.json",
            mime="application/json",
            use_container_width=True,
        )
        try:
            pdf_bytes = make_estimate_pdf_bytes(build_estimate_sheet(record, estimate, catalog))
        except Exception:
            # The result step stays usable even if the PDF cannot be rendered.
            logger.exception("Estimate PDF rendering failed")
        else:
            st.download_button(
                "見積書 (PDF)",
                data=pdf_bytes,
                file_name="estimate.pdf",
                mime="application/pdf",
                use_container_width=True,
            )


def _render_proposal_panel(wizard: EstimatorWizard, catalog: PricingCatalog) -> None:
    slot = wizard.proposal_slot
    proposal = wizard.proposal
    if proposal is not None:
        label = "AI提案書の生成完了"
    elif isinstance(slot, ProposalPending):
        label = "AIが構成案を作成中..."
    else:
        label = "AIで詳細な提案書を作成する"

    if st.button(label, key="generate_proposal", disabled=not wizard.can_request_proposal, use_container_width=True):
        with st.spinner("AIが構成案を作成中..."):
            _request_proposal(_proposal_generator(catalog))
        st.rerun()

    if proposal is None:
        st.caption("ボタンをクリックすると、AIがプロジェクト要件を分析し、技術構成と開発スケジュールを提案します。")
        return

    with st.container(border=True):
        st.markdown("**AI提案書ドラフト**")
        st.markdown("プロジェクト概要")
        st.write(proposal.summary)
        if proposal.technical_challenges:
            st.markdown("技術的な課題")
            for item in proposal.technical_challenges:
                st.markdown(f"- {item}")
        if proposal.recommended_stack:
            st.markdown("推奨技術スタック")
            st.write(" / ".join(proposal.recommended_stack))
        if proposal.timeline_estimation:
            st.markdown("想定スケジュール")
            st.write(proposal.timeline_estimation)


def _render_result_step(wizard: EstimatorWizard, catalog: PricingCatalog) -> None:
    estimate = wizard.estimate()
    st.subheader("概算見積もり結果")
    left, right = st.columns([1, 1], gap="large")
    with left:
        st.metric("概算費用", f"{format_jpy(estimate.total_jpy)}~")
        st.caption("*税抜価格・要件により変動します。これはAIによるシミュレーション値です。")
        if estimate.monthly_maintenance_jpy:
            st.metric("月額保守費用", f"{format_jpy(estimate.monthly_maintenance_jpy)} / 月")
        st.write(f"開発規模: {catalog.scale_label(wizard.state.scale)}")
        st.write(f"デザイン対応: {'素材支給あり' if wizard.state.design_provided else '制作依頼 (追加費)'}")
        rows = [{"項目": li.description, "金額": format_jpy(li.amount_jpy)} for li in estimate.line_items]
        st.dataframe(rows, use_container_width=True, hide_index=True)
        _render_downloads(wizard, estimate, catalog)
    with right:
        _render_proposal_panel(wizard, catalog)
        if st.button("この内容で専門家に相談する", key="consult", type="primary", use_container_width=True):
            _handoff_to_contact()
            st.rerun()


def _shows_next_button(wizard: EstimatorWizard) -> bool:
    # Step 1 can also move on with the default category still selected.
    return wizard.step < WizardStep.RESULT


def _render_step_controls(wizard: EstimatorWizard) -> None:
    col1, col2, col3, _ = st.columns([1, 1, 1, 5])
    if wizard.step > WizardStep.CATEGORY:
        if col1.button("戻る", key=f"wizard_back_{wizard.step.value}", use_container_width=True):
            wizard.retreat()
            st.rerun()
    if _shows_next_button(wizard):
        if col2.button("次へ", key=f"wizard_next_{wizard.step.value}", use_container_width=True):
            wizard.advance()
            st.rerun()
    if col3.button("最初から", key=f"wizard_reset_{wizard.step.value}", use_container_width=True):
        _reset_estimator()
        st.rerun()


def _render_estimator(catalog: PricingCatalog) -> None:
    _anchor("estimator")
    st.header("料金シミュレーション")
    wizard = _wizard()
    _render_progress(wizard)

    with st.container(border=True):
        if wizard.step == WizardStep.CATEGORY:
            _render_category_step(wizard, catalog)
        elif wizard.step == WizardStep.FEATURES:
            _render_features_step(wizard, catalog)
        elif wizard.step == WizardStep.SCALE_AND_OPTIONS:
            _render_scale_step(wizard, catalog)
        else:
            _render_result_step(wizard, catalog)
        st.divider()
        _render_step_controls(wizard)


def _render_faq() -> None:
    _anchor("faq")
    st.header(site_content.FAQ_TITLE)
    st.caption(site_content.FAQ_LEAD)
    faq: site_content.FaqAccordion = st.session_state["faq"]
    for idx, item in enumerate(site_content.FAQ_ITEMS):
        marker = "－" if faq.is_open(idx) else "＋"
        if st.button(f"{marker} {item.question}", key=f"faq_{idx}", use_container_width=True):
            faq.toggle(idx)
            st.rerun()
        if faq.is_open(idx):
            st.write(item.answer)


def _render_contact(catalog: PricingCatalog) -> None:
    _anchor("contact")
    _sync_contact_draft(catalog)
    draft: ContactDraft = st.session_state["contact_draft"]
    record = st.session_state.get("estimation_record")

    info, form_col = st.columns([1, 1], gap="large")
    with info:
        st.header(site_content.CONTACT_TITLE)
        st.write(site_content.CONTACT_LEAD)
        if isinstance(record, EstimationRecord):
            with st.container(border=True):
                st.markdown("**選択中の見積もりプラン**")
                st.write(f"開発タイプ: {catalog.category_label(record.state.category)}")
                st.write(f"規模感: {catalog.scale_label(record.state.scale)}")
                st.write(f"概算費用: {format_jpy(record.total_jpy)}~")
                if record.proposal is not None:
                    st.caption("AI提案書が含まれています")

    with form_col:
        st.subheader("見積もり内容についての相談" if isinstance(record, EstimationRecord) else "無料相談フォーム")
        with st.form("contact_form"):
            st.text_input("会社名・屋号", key="contact_company", placeholder="例: 株式会社EstiMate")
            st.text_input("ご担当者名", key="contact_name", placeholder="例: 山田 太郎")
            st.text_input("メールアドレス", key="contact_email", placeholder="例: yamada@example.com")
            st.text_area(
                "ご相談内容",
                key="contact_message",
                height=280,
                placeholder=site_content.CONTACT_MESSAGE_PLACEHOLDER,
            )
            submitted = st.form_submit_button("相談を申し込む (無料)", use_container_width=True)
        if submitted:
            draft.company = str(st.session_state.get("contact_company") or "")
            draft.name = str(st.session_state.get("contact_name") or "")
            draft.email = str(st.session_state.get("contact_email") or "")
            draft.message = str(st.session_state.get("contact_message") or "")
            draft.submit()
        if draft.submitted:
            st.success("お問い合わせありがとうございます。担当者よりご連絡いたします。")


def _maybe_scroll_to_contact() -> None:
    if not bool(st.session_state.pop("_scroll_to_contact", False)):
        return
    # Best effort: the element may not exist yet, so everything is guarded in the script.
    components.html(
        """
        <script>
        try {
          const doc = window.parent.document;
          const el = doc.getElementById("contact");
          if (el) {
            el.scrollIntoView({behavior: "smooth", block: "start"});
            const input = doc.querySelector('[data-testid="stForm"] input');
            if (input) { input.focus(); }
          }
        } catch (e) {}
        </script>
        """,
        height=0,
    )


def _render_sidebar(catalog: PricingCatalog) -> None:
    wizard = _wizard()
    st.sidebar.caption("見積もりプレビュー")
    for step in WizardStep:
        marker = "➡️" if step == wizard.step else "•"
        st.sidebar.write(f"{marker} {STEP_TITLES[step]}")
    st.sidebar.metric("概算費用", f"{format_jpy(wizard.total_jpy)}~")
    if wizard.state.wants_maintenance:
        st.sidebar.write(f"保守: {format_jpy(catalog.monthly_maintenance_jpy)} / 月")
    st.sidebar.write(f"機能: {len(wizard.state.selected_features)} 件")
    if st.sidebar.button("見積もりをリセット", use_container_width=True):
        _reset_estimator()
        st.rerun()


def main() -> None:
    load_dotenv()
    setup_logging(_read_secret_or_env_str("LOG_LEVEL") or "INFO")
    st.set_page_config(page_title=f"{site_content.SITE_NAME} - システム開発の概算見積もり", layout="wide")

    try:
        catalog = _load_catalog()
    except CatalogError as exc:
        st.error(f"Pricing catalog is misconfigured: {exc}")
        st.stop()

    _init_state(catalog)

    _render_header()
    _render_hero()
    st.divider()
    _render_problem()
    st.divider()
    _render_solution()
    st.divider()
    _render_estimator(catalog)
    st.divider()
    _render_faq()
    st.divider()
    _render_contact(catalog)
    st.divider()
    st.caption(site_content.footer_text(datetime.now().year))

    _maybe_scroll_to_contact()
    _render_sidebar(catalog)


if __name__ == "__main__":
    main()
