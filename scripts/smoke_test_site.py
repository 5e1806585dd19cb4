from __future__ import annotations

"""
Smoke test for the estimator (local, offline).

Presses the wizard "buttons" one at a time against an in-memory EstimatorWizard, then:
- checks the live total after every press (estimate_engine)
- requests a proposal through a transport that always fails (ai_proposal fallback path)
- hands the result off and renders the prefilled contact message (handoff)
- renders the estimate sheet PDF (estimate_pdf)

It writes PDFs to `out/smoke_test_site/` and exits non-zero if anything breaks.

Usage:
  python3 scripts/smoke_test_site.py
  python3 scripts/smoke_test_site.py --out-dir out/smoke_test_site
"""

import argparse
import sys
import traceback
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

# Allow running as `python3 scripts/smoke_test_site.py` (module imports live at repo root).
_ROOT = Path(__file__).resolve().parents[1]
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from ai_proposal import FALLBACK_PROPOSAL, ProposalConfig, ProposalGenerator
from estimate_pdf import build_estimate_sheet, make_estimate_pdf_bytes
from estimator_wizard import EstimatorWizard, WizardStep
from handoff import ContactDraft, format_jpy
from pricing_catalog import CatalogError, PricingCatalog, load_default_catalog
from site_logging import setup_logging


def _repo_root() -> Path:
    return Path(__file__).resolve().parents[1]


def _offline_transport(system: str, user: str) -> str:
    raise ConnectionError("offline smoke test: no network")


@dataclass(frozen=True)
class Step:
    label: str
    apply: Callable[[EstimatorWizard], object]


def _run_scenario(
    *,
    name: str,
    catalog: PricingCatalog,
    steps: list[Step],
    expected_total: int,
    out_dir: Path,
) -> None:
    wizard = EstimatorWizard(catalog)

    print("")
    print("=" * 72)
    print(f"SCENARIO: {name}")
    print("=" * 72)

    for i, step in enumerate(steps, start=1):
        step.apply(wizard)
        print(f"[{i}/{len(steps)}] {step.label}")
        print(f"  - step: {wizard.step.value}  total: {format_jpy(wizard.total_jpy)}")

    if wizard.step != WizardStep.RESULT:
        raise RuntimeError(f"Scenario {name!r} did not reach the result step (at {wizard.step.name}).")
    if wizard.total_jpy != expected_total:
        raise RuntimeError(f"Scenario {name!r}: expected {expected_total}, got {wizard.total_jpy}.")

    generator = ProposalGenerator(ProposalConfig(api_key="offline"), catalog, transport=_offline_transport)
    ticket = wizard.begin_proposal()
    if ticket is None or not wizard.complete_proposal(ticket, generator.generate(wizard.state)):
        raise RuntimeError("Proposal slot did not accept the generated proposal.")
    if wizard.proposal is not FALLBACK_PROPOSAL:
        raise RuntimeError("Offline transport should have produced the fallback proposal.")

    record = wizard.build_record()
    draft = ContactDraft()
    draft.apply_record(record, catalog)
    if f"{format_jpy(expected_total)}~" not in draft.message:
        raise RuntimeError("Contact message is missing the estimated total.")

    pdf_bytes = make_estimate_pdf_bytes(build_estimate_sheet(record, wizard.estimate(), catalog))
    if not pdf_bytes.startswith(b"%PDF"):
        raise RuntimeError("Generated PDF does not start with %PDF header.")
    for marker in (b"PROJECT ESTIMATE", b"AI PROPOSAL DRAFT"):
        if marker not in pdf_bytes:
            raise RuntimeError(f"Generated PDF missing expected marker: {marker!r}")

    out_path = out_dir / f"{name}.pdf"
    out_path.write_bytes(pdf_bytes)
    print(f"  - pdf: {out_path.name}")


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser()
    parser.add_argument(
        "--out-dir",
        default=str(_repo_root() / "out" / "smoke_test_site"),
        help="Directory to write PDFs into (default: out/smoke_test_site).",
    )
    args = parser.parse_args(argv)
    setup_logging("WARNING")

    out_dir = Path(args.out_dir).resolve()
    out_dir.mkdir(parents=True, exist_ok=True)

    catalog = load_default_catalog()

    web_steps = [
        Step("press_category_web", lambda w: w.select_category("web")),
        Step("press_feature_auth", lambda w: w.toggle_feature("auth")),
        Step("press_feature_payment", lambda w: w.toggle_feature("payment")),
        Step("press_next", lambda w: w.advance()),
        Step("press_scale_medium", lambda w: w.select_scale("medium")),
        Step("press_maintenance", lambda w: w.set_maintenance(True)),
        Step("press_next", lambda w: w.advance()),
    ]

    lp_steps = [
        Step("press_category_lp", lambda w: w.select_category("lp")),
        Step("press_feature_form", lambda w: w.toggle_feature("form")),
        Step("press_feature_form_again", lambda w: w.toggle_feature("form")),
        Step("press_next", lambda w: w.advance()),
        Step("press_design_from_scratch", lambda w: w.set_design_provided(False)),
        Step("press_next", lambda w: w.advance()),
    ]

    back_and_forth_steps = [
        Step("press_category_app", lambda w: w.select_category("app")),
        Step("press_next", lambda w: w.advance()),
        Step("press_scale_large", lambda w: w.select_scale("large")),
        Step("click_progress_step_2", lambda w: w.jump_to(WizardStep.FEATURES)),
        Step("press_feature_ai", lambda w: w.toggle_feature("ai")),
        Step("press_next", lambda w: w.advance()),
        Step("press_next", lambda w: w.advance()),
    ]

    _run_scenario(name="web_medium", catalog=catalog, steps=web_steps, expected_total=928000, out_dir=out_dir)
    _run_scenario(name="lp_design", catalog=catalog, steps=lp_steps, expected_total=400000, out_dir=out_dir)
    # (700000 + 250000) * 2.5
    _run_scenario(name="app_large", catalog=catalog, steps=back_and_forth_steps, expected_total=2375000, out_dir=out_dir)

    print("")
    print(f"OK: wrote PDFs to {out_dir}")
    return 0


if __name__ == "__main__":
    try:
        raise SystemExit(main())
    except CatalogError as exc:
        print(f"FAIL: CatalogError: {exc}", file=sys.stderr)
        raise SystemExit(2)
    except Exception:
        traceback.print_exc()
        raise SystemExit(1)
