"""Checkers decide whether a cross-package reference breaks a package rule.

Checkers run in the order of :data:`DEFAULT_CHECKERS`. A violation the
todo files already list does not stop the search, so the next checker
still gets to flag the reference; the first unlisted violation does.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from .models import ConstantContext, Reference, ReferenceOffense, ViolationType


class ReferenceLister(ABC):
    """Answers whether a todo file already accepts a violation."""

    @abstractmethod
    def is_listed(self, reference: Reference, violation_type: ViolationType) -> bool:
        ...


class EverythingListed(ReferenceLister):
    """Treats every violation as accepted, so each checker reports its own."""

    def is_listed(self, reference: Reference, violation_type: ViolationType) -> bool:
        return True


class Checker(ABC):
    violation_type: ViolationType

    @abstractmethod
    def is_violation(self, reference: Reference) -> bool:
        """True if *reference* breaks this checker's rule, listed or not."""

    def is_invalid_reference(self, reference: Reference, reference_lister: Optional[ReferenceLister] = None) -> bool:
        if not self.is_violation(reference):
            return False
        if reference_lister is None:
            return True
        return not reference_lister.is_listed(reference, self.violation_type)

    @abstractmethod
    def message_for(self, reference: Reference) -> str:
        ...

    def is_strict_mode_violation(self, offense: ReferenceOffense) -> bool:
        """True if the package that owns the todo entry forbids listing this offense."""
        return False

    def standard_help_message(self, reference: Reference) -> str:
        return (
            f"Inference details: this is a reference to {reference.constant.name} which seems to be "
            f"defined in {reference.constant.location}.\n"
            "To receive help interpreting or resolving this error message, run: packguard check --help"
        )


class DependencyChecker(Checker):
    """Flags references to packages the referencing package does not depend on."""

    violation_type = ViolationType.DEPENDENCY

    def is_violation(self, reference: Reference) -> bool:
        if not reference.package.enforces_dependencies():
            return False
        return not reference.package.depends_on(reference.constant.package)

    def message_for(self, reference: Reference) -> str:
        const_name = reference.constant.name
        const_package = reference.constant.package
        ref_package = reference.package
        return (
            f"Dependency violation: {const_name} belongs to '{const_package}', but '{ref_package}' "
            f"does not specify a dependency on '{const_package}'.\n"
            "Are we missing an abstraction?\n"
            "Is the code making the reference, and the referenced constant, in the right packages?\n"
            "\n"
            f"{self.standard_help_message(reference)}"
        )

    def is_strict_mode_violation(self, offense: ReferenceOffense) -> bool:
        if offense.reference is None:
            return False
        return offense.reference.package.enforce_dependencies == "strict"


class PrivacyChecker(Checker):
    """Flags references to private constants of another package.

    ``enforce_privacy`` is either ``true`` (everything outside the public
    path is private) or a list of explicitly private constants, which
    covers the constants nested below them too.
    """

    violation_type = ViolationType.PRIVACY

    def is_violation(self, reference: Reference) -> bool:
        constant = reference.constant
        if constant.is_public:
            return False
        privacy_option = constant.package.enforce_privacy
        if privacy_option in (False, None):
            return False
        if privacy_option is True:
            return True
        if isinstance(privacy_option, list):
            return self._explicitly_private(constant, privacy_option)
        return False

    @staticmethod
    def _explicitly_private(constant: ConstantContext, private_constants: Sequence[str]) -> bool:
        return any(
            constant.name == private or constant.name.startswith(private + "::")
            for private in private_constants
        )

    def message_for(self, reference: Reference) -> str:
        constant = reference.constant
        return (
            f"Privacy violation: '{constant.name}' is private to '{constant.package}' but referenced "
            f"from '{reference.package}'.\n"
            f"Is there a public entrypoint in '{constant.package.public_path}' that you can use instead?\n"
            "\n"
            f"{self.standard_help_message(reference)}"
        )


DEFAULT_CHECKERS: List[Checker] = [DependencyChecker(), PrivacyChecker()]


def checker_for(violation_type: ViolationType, checkers: Sequence[Checker] = DEFAULT_CHECKERS) -> Checker:
    return next(checker for checker in checkers if checker.violation_type == violation_type)


def check_reference(
    reference: Reference,
    checkers: Sequence[Checker] = DEFAULT_CHECKERS,
    reference_lister: Optional[ReferenceLister] = None,
) -> List[ReferenceOffense]:
    """Offenses for *reference*, in checker order.

    Listed violations are returned too, so they stay in the todo file.
    The first violation that is not listed is the last one returned;
    without a lister that is the first violation found.
    """
    offenses = []
    for checker in checkers:
        if not checker.is_violation(reference):
            continue
        offenses.append(ReferenceOffense.build(reference, checker.violation_type, checker.message_for(reference)))
        if checker.is_invalid_reference(reference, reference_lister):
            break
    return offenses
