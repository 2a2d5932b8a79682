"""Onboarding State: pure derivation of onboarding progress from a profile snapshot.

Invariants:
    - derive_onboarding is PURE: no IO, no async, same input -> same output
    - Step order is fixed: login -> phone_verification -> profile_completion
    - phone_verified=False always yields phone_verification, whatever else is set
    - phone_verified and profile_completed -> can_access_dashboard, whatever kyc_status is
    - progress.percentage is in {0, 50, 100} and depends only on the two mandatory steps
    - can_invest requires kyc_status == approved

Design Decisions:
    - KYC is informational for the dashboard; routes that need it pass require_kyc
      to the route policy instead
    - OnboardingState is never persisted; it is recomputed from the profile
"""

from dataclasses import dataclass

from sessiongate.core.domain_types import (
    DEFAULT_ROUTES, MANDATORY_STEPS, KycStatus, NextAction, OnboardingStep, RoutePaths,
)
from sessiongate.core.profile import UserProfile


@dataclass(frozen=True)
class OnboardingSteps:
    phone_verified: bool = False
    profile_completed: bool = False
    kyc_submitted: bool = False
    kyc_approved: bool = False


@dataclass(frozen=True)
class OnboardingProgress:
    """Progress over the mandatory steps; `completed` also lists optional KYC steps."""
    completed_mandatory_steps: int = 0
    percentage: int = 0
    completed: tuple[str, ...] = ()
    total: int = len(MANDATORY_STEPS)


@dataclass(frozen=True)
class OnboardingState:
    current_step: OnboardingStep
    next_step: NextAction
    redirect_target: str
    can_access_dashboard: bool = False
    can_invest: bool = False
    can_subscribe: bool = False
    is_complete: bool = False
    steps: OnboardingSteps = OnboardingSteps()
    progress: OnboardingProgress = OnboardingProgress()


# kyc_status -> (informational step, next action) once mandatory steps are done
_KYC_SUBSTATE: dict[KycStatus, tuple[OnboardingStep, NextAction]] = {
    KycStatus.NOT_SUBMITTED: (OnboardingStep.KYC_OPTIONAL, NextAction.SUBMIT_KYC_OPTIONAL),
    KycStatus.PENDING: (OnboardingStep.KYC_PENDING, NextAction.KYC_UNDER_REVIEW),
    KycStatus.REJECTED: (OnboardingStep.KYC_REJECTED, NextAction.RESUBMIT_KYC),
    KycStatus.APPROVED: (OnboardingStep.COMPLETE, NextAction.COMPLETE),
}


def _progress(steps: OnboardingSteps) -> OnboardingProgress:
    done = [steps.phone_verified, steps.profile_completed]
    completed = [
        step for step, flag in (
            ("phone_verification", steps.phone_verified),
            ("profile_completion", steps.profile_completed),
            ("kyc_submission", steps.kyc_submitted),
            ("kyc_approval", steps.kyc_approved),
        ) if flag
    ]
    count = sum(done)
    return OnboardingProgress(
        completed_mandatory_steps=count,
        percentage=round(count / len(MANDATORY_STEPS) * 100),
        completed=tuple(completed),
    )


def derive_onboarding(
    profile: UserProfile | None, routes: RoutePaths = DEFAULT_ROUTES,
) -> OnboardingState:
    """Map a profile snapshot (None = not authenticated) to its onboarding state."""
    if profile is None:
        return OnboardingState(
            current_step=OnboardingStep.LOGIN,
            next_step=NextAction.LOGIN,
            redirect_target=routes.login,
        )

    steps = OnboardingSteps(
        phone_verified=profile.phone_verified,
        profile_completed=profile.profile_completed,
        kyc_submitted=profile.kyc_status != KycStatus.NOT_SUBMITTED,
        kyc_approved=profile.kyc_status == KycStatus.APPROVED,
    )
    progress = _progress(steps)

    if not steps.phone_verified:
        return OnboardingState(
            current_step=OnboardingStep.PHONE_VERIFICATION,
            next_step=NextAction.VERIFY_PHONE,
            redirect_target=routes.verify_phone,
            steps=steps,
            progress=progress,
        )

    if not steps.profile_completed:
        return OnboardingState(
            current_step=OnboardingStep.PROFILE_COMPLETION,
            next_step=NextAction.COMPLETE_PROFILE,
            redirect_target=routes.profile,
            steps=steps,
            progress=progress,
        )

    current, next_step = _KYC_SUBSTATE[profile.kyc_status]
    return OnboardingState(
        current_step=current,
        next_step=next_step,
        redirect_target=routes.dashboard,
        can_access_dashboard=True,
        can_invest=steps.kyc_approved,
        can_subscribe=not profile.has_entitled_subscription,
        is_complete=True,
        steps=steps,
        progress=progress,
    )


def requires_onboarding(state: OnboardingState) -> bool:
    return not state.can_access_dashboard


# ─── Display copy ────────────────────────────────────────────────

_NEXT_STEP_MESSAGES = {
    NextAction.LOGIN: "Please log in to continue",
    NextAction.VERIFY_PHONE: "Please verify your phone number to continue",
    NextAction.COMPLETE_PROFILE: "Complete your profile to access the dashboard",
    NextAction.SUBMIT_KYC_OPTIONAL: "Complete your KYC process to unlock investing",
    NextAction.KYC_UNDER_REVIEW: "Your KYC documents are under review",
    NextAction.RESUBMIT_KYC: "Please resubmit your KYC documents",
    NextAction.COMPLETE: "Onboarding complete! Welcome to your dashboard",
}

_STEP_TITLES = {
    OnboardingStep.LOGIN: "Log In",
    OnboardingStep.PHONE_VERIFICATION: "Verify Phone Number",
    OnboardingStep.PROFILE_COMPLETION: "Complete Profile",
    OnboardingStep.KYC_OPTIONAL: "Complete KYC Process",
    OnboardingStep.KYC_PENDING: "KYC Under Review",
    OnboardingStep.KYC_REJECTED: "KYC Resubmission Required",
    OnboardingStep.COMPLETE: "Onboarding Complete",
}

_STEP_DESCRIPTIONS = {
    OnboardingStep.LOGIN: "Sign in with your email or phone number",
    OnboardingStep.PHONE_VERIFICATION: "Verify your phone number with the OTP code sent to you",
    OnboardingStep.PROFILE_COMPLETION: (
        "Provide your personal information including date of birth, "
        "country, city, and address"
    ),
    OnboardingStep.KYC_OPTIONAL: "Upload your identity documents to start investing",
    OnboardingStep.KYC_PENDING: "Your documents are being reviewed by our team",
    OnboardingStep.KYC_REJECTED: (
        "Your previous submission was not approved. "
        "Please resubmit with correct documents"
    ),
    OnboardingStep.COMPLETE: "You have successfully completed the onboarding process",
}


def next_step_message(state: OnboardingState) -> str:
    return _NEXT_STEP_MESSAGES[state.next_step]


def step_title(step: OnboardingStep) -> str:
    return _STEP_TITLES.get(step, "Onboarding")


def step_description(step: OnboardingStep) -> str:
    return _STEP_DESCRIPTIONS.get(step, "Complete the required steps to access your dashboard")
