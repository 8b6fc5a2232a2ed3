"""CV workflow API: upload a CV, run the extraction workflow, deliver a DOCX."""
