"""CompanyProduct event type names."""


class CompanyProductEvent(str):
    PHASE_SET = "CompanyProductPhaseSet"
    PROCESS_SET = "CompanyProductProcessSet"
    STAGE_SET = "CompanyProductStageSet"
    PROCESS_COMPLETED = "CompanyProductProcessCompleted"
    HEALTH_UPDATED = "CompanyProductHealthUpdated"
    HEALTH_COMPUTED = "CompanyProductHealthComputed"
    RISK_LEVEL_SET = "CompanyProductRiskLevelSet"
    SLA_WARNING = "CompanyProductSLAWarning"
    SLA_BREACHED = "CompanyProductSLABreached"
    OWNER_SET = "CompanyProductOwnerSet"
    TIER_SET = "CompanyProductTierSet"
    MRR_SET = "CompanyProductMRRSet"
    SEATS_SET = "CompanyProductSeatsSet"
    NEXT_STEP_DUE_SET = "CompanyProductNextStepDueSet"


STAGE_ENTRY_EVENTS = (CompanyProductEvent.PROCESS_SET, CompanyProductEvent.STAGE_SET)
