from flask_wtf import FlaskForm
from wtforms import FieldList, HiddenField, SelectField, StringField, SubmitField, URLField
from wtforms.validators import DataRequired, StopValidation

from mccdash.campaigns import validation as v
from mccdash.models import CampaignFormData, digits_only

SAMPLE_CAMPAIGN = {
    "name": "Spring Plumbing Promo",
    "budget": 25,
    "max_cpc": 2.5,
    "final_url": "https://www.example.com/plumbing",
    "headlines": [
        "Fast Local Plumbers",
        "24/7 Emergency Service",
        "Licensed & Insured Pros",
        "Free Estimates Today",
        "Same-Day Drain Cleaning",
        "Upfront Flat-Rate Pricing",
        "Water Heater Experts",
        "Trusted Since 1998",
        "Book Online in Minutes",
        "Satisfaction Guaranteed",
    ],
    "descriptions": [
        "Certified plumbers ready around the clock. Call now for a free, no-pressure quote.",
        "From leaks to full repipes, we do it right the first time. Book your visit today.",
    ],
}


def _strip(value):
    return value.strip() if isinstance(value, str) else value


class Rule:
    """Run a validation.check_* function as a WTForms validator."""

    def __init__(self, check):
        self.check = check

    def __call__(self, form, field):
        message = self.check(field.data)
        if message:
            raise StopValidation(message)


class CampaignForm(FlaskForm):
    mcc_id = HiddenField()
    customer_id = SelectField(
        "Account",
        choices=[],
        validate_choice=False,
        validators=[DataRequired(message=v.CUSTOMER_ID_REQUIRED)],
    )
    name = StringField(
        "Campaign name",
        filters=[_strip],
        validators=[Rule(v.check_name)],
        render_kw={"maxlength": v.NAME_MAX, "placeholder": "e.g. Spring Promo"},
    )
    budget = StringField(
        "Daily budget",
        default=str(v.DEFAULT_BUDGET),
        filters=[_strip],
        validators=[Rule(v.check_budget)],
        render_kw={"type": "number", "step": "0.01", "min": v.BUDGET_MIN, "max": v.BUDGET_MAX},
    )
    max_cpc = StringField(
        "Max CPC",
        default=str(v.DEFAULT_MAX_CPC),
        filters=[_strip],
        validators=[Rule(v.check_max_cpc)],
        render_kw={"type": "number", "step": "0.01", "min": v.MAX_CPC_MIN, "max": v.MAX_CPC_MAX},
    )
    headlines = FieldList(
        StringField(
            "Headline",
            filters=[_strip],
            validators=[Rule(v.check_headline)],
            render_kw={"maxlength": v.HEADLINE_MAX},
        ),
        min_entries=v.HEADLINE_COUNT,
        max_entries=v.HEADLINE_COUNT,
    )
    descriptions = FieldList(
        StringField(
            "Description",
            filters=[_strip],
            validators=[Rule(v.check_description)],
            render_kw={"maxlength": v.DESCRIPTION_MAX},
        ),
        min_entries=1,
        max_entries=v.DESCRIPTIONS_LIMIT,
    )
    final_url = URLField(
        "Final URL (optional)",
        filters=[_strip],
        validators=[Rule(v.check_final_url)],
        render_kw={"placeholder": "https://www.example.com"},
    )
    add_description = SubmitField("Add description")
    submit = SubmitField("Create Campaign")

    def fill_sample(self) -> None:
        self.name.data = SAMPLE_CAMPAIGN["name"]
        self.budget.data = str(SAMPLE_CAMPAIGN["budget"])
        self.max_cpc.data = str(SAMPLE_CAMPAIGN["max_cpc"])
        self.final_url.data = SAMPLE_CAMPAIGN["final_url"]
        for field, text in zip(self.headlines, SAMPLE_CAMPAIGN["headlines"]):
            field.data = text
        while len(self.descriptions) < len(SAMPLE_CAMPAIGN["descriptions"]):
            self.descriptions.append_entry()
        for field, text in zip(self.descriptions, SAMPLE_CAMPAIGN["descriptions"]):
            field.data = text

    def to_campaign_data(self) -> CampaignFormData:
        return CampaignFormData(
            customer_id=digits_only(self.customer_id.data),
            name=self.name.data,
            budget=v.parse_number(self.budget.data),
            max_cpc=v.parse_number(self.max_cpc.data),
            headlines=[f.data for f in self.headlines],
            descriptions=[f.data for f in self.descriptions],
            final_url=self.final_url.data or None,
            mcc_id=digits_only(self.mcc_id.data) or None,
        )
