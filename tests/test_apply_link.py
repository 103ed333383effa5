from modules.job_hunter.lib.apply_link import find_final_apply_url


def test_relative_apply_anchor_is_resolved():
    html = '<a href="/careers/apply/123">Apply Now</a>'
    assert find_final_apply_url(html, "https://acme.com/careers") == "https://acme.com/careers/apply/123"


def test_first_qualifying_anchor_wins():
    html = """
    <a href="/careers">Back to careers</a>
    <a href="/login?next=/apply">Apply with account</a>
    <a href="https://jobs.lever.co/acme/abc/apply">Apply for this job</a>
    <a href="/careers/apply/999">Apply</a>
    """
    assert find_final_apply_url(html, "https://acme.com/careers/job/7") == "https://jobs.lever.co/acme/abc/apply"


def test_falls_back_to_page_url_when_it_is_a_posting():
    html = "<p>Send your CV to hr@acme.com</p>"
    assert find_final_apply_url(html, "https://acme.com/jobs/42?ref=home") == "https://acme.com/jobs/42"


def test_no_apply_link_and_generic_page_gives_none():
    html = '<a href="/about">About us</a>'
    assert find_final_apply_url(html, "https://acme.com/careers") is None
    assert find_final_apply_url("", "https://acme.com/team") is None
