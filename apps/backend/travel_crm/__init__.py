"""Travel CRM backend: lead extraction from conversation exports."""
