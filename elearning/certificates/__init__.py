"""
Certificates Package - LearnHub

Issues exactly one CertificateRequest per enrollment once progress reaches
100 percent, and lets staff approve or reject it.

Author: LearnHub Development Team
Version: 1.0.0
"""
