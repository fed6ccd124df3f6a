"""Correction layer: small deterministic touch-ups before the automation gates.

Runs only under a policy with ``smart_correction``. Each rule changes the
intent only when it is not already in corrected form, so a second pass is a
no-op, and every change leaves a warning behind.
"""
from ..app.config import Config
from ..nlu import rules
from ..nlu.normalizer import clean_text
from ..schemas.order_models import AutomationPolicy, CustomerKind, OrderIntent, PaymentStatus


def has_honorific(name: str) -> bool:
    words = clean_text(name).split()
    if not words:
        return False
    if words[0] in rules.HONORIFICS_LATIN and len(words) > 1:
        return True
    return any(words[0].startswith(h) for h in rules.HONORIFICS_THAI)


def prefix_honorific(name: str) -> str:
    if rules.is_thai(name):
        return "คุณ" + name
    return f"{Config.DEFAULT_HONORIFIC} {name}"


def apply_corrections(intent: OrderIntent, policy: AutomationPolicy) -> OrderIntent:
    """Return a corrected copy of ``intent`` (the input is left untouched)."""
    if not policy.smart_correction:
        return intent
    fixed = intent.model_copy(deep=True)

    customer = fixed.customer
    if customer.kind != CustomerKind.unspecified and customer.name and not has_honorific(customer.name):
        new_name = prefix_honorific(customer.name)
        fixed.warn(f"customer name prefixed: '{customer.name}' -> '{new_name}'")
        customer.name = new_name

    for item in fixed.items:
        if item.quantity <= 0:
            item.quantity = 1
            item.corrected = True
            fixed.warn(f"quantity for {item.entry.name} corrected to 1")

    if fixed.payment != PaymentStatus.credit and rules.find_phrase(clean_text(fixed.raw_text), rules.CREDIT_KEYWORDS):
        fixed.warn(f"payment changed from {fixed.payment.value} to credit")
        fixed.payment = PaymentStatus.credit

    fixed.total = fixed.compute_total()
    return fixed
