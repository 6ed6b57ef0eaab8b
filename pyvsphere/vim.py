# vim: tabstop=4 shiftwidth=4 softtabstop=4

# Copyright (c) 2012 VMware, Inc.
# Copyright (c) 2011 Citrix Systems, Inc.
# Copyright 2011 OpenStack Foundation
#
#    Licensed under the Apache License, Version 2.0 (the "License"); you may
#    not use this file except in compliance with the License. You may obtain
#    a copy of the License at
#
#         http://www.apache.org/licenses/LICENSE-2.0
#
#    Unless required by applicable law or agreed to in writing, software
#    distributed under the License is distributed on an "AS IS" BASIS, WITHOUT
#    WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied. See the
#    License for the specific language governing permissions and limitations
#    under the License.

"""
Classes for making VMware VI SOAP calls.
"""

import http.client
import logging
import re
import socket
import ssl
import urllib.error
import urllib.request
import xml.sax

# Parser.parse reports timings through suds.metrics
import suds.metrics
from suds.sax.document import Document
from suds.sax.element import Element
from suds.sax.parser import Parser
from suds import transport
from suds.transport.http import HttpTransport

from pyvsphere import error_util
from pyvsphere import vim_util

LOG = logging.getLogger(__name__)

SOAP_NS = 'http://schemas.xmlsoap.org/soap/envelope/'
XSD_NS = 'http://www.w3.org/2001/XMLSchema'
XSI_NS = 'http://www.w3.org/2001/XMLSchema-instance'
VIM_NS = 'urn:internalvim25'
SOAP_ACTION = 'urn:vim25/%s' % vim_util.API_VERSION

_PASSWORD_RE = re.compile(r'(<password>)(.*?)(</password>)', re.S)


def mask_password(message):
    return _PASSWORD_RE.sub(r'\1*****\3', message)


class VimTransport(HttpTransport):
    """HTTP transport with control over server certificate checks."""

    def __init__(self, insecure=True, cacert=None, **kwargs):
        HttpTransport.__init__(self, **kwargs)
        if cacert:
            self.ssl_context = ssl.create_default_context(cafile=cacert)
        elif insecure:
            self.ssl_context = ssl._create_unverified_context()
        else:
            self.ssl_context = ssl.create_default_context()

    def u2handlers(self):
        handlers = HttpTransport.u2handlers(self)
        handlers.append(urllib.request.HTTPSHandler(context=self.ssl_context))
        return handlers


class Vim(object):
    """The VIM Object."""

    def __init__(self,
                 protocol="https",
                 host="localhost",
                 port=None,
                 insecure=True,
                 cacert=None,
                 proxy=None,
                 timeout=None,
                 cookiejar=None):
        """
        Creates the necessary communication interfaces for the SOAP API.

        :param protocol: http or https
        :param host: Server IP address[:port] or host name[:port]
        :param port: optional port, defaults to the protocol's port
        :param insecure: skip server certificate verification
        :param cacert: CA bundle used to verify the server certificate
        :param proxy: {scheme: url} mapping handed to urllib
        :param timeout: socket timeout in seconds
        :param cookiejar: cookie jar holding the session cookie
        """
        self._protocol = protocol
        self._host_name = host
        if port:
            host = '%s:%s' % (host, port)
        self._url = '%s://%s/sdk/vimService' % (protocol, host)
        options = {}
        if proxy:
            options['proxy'] = dict(proxy)
        if timeout:
            options['timeout'] = timeout
        self.client = VimTransport(insecure=insecure, cacert=cacert,
                                   **options)
        if cookiejar is not None:
            self.client.cookiejar = cookiejar

    @property
    def url(self):
        return self._url

    @property
    def cookiejar(self):
        return self.client.cookiejar

    def serialize(self, mo_type, moid, method, spec=None):
        """Builds the SOAP envelope for one method invocation."""
        envelope = Element('Envelope', ns=('soap', SOAP_NS))
        envelope.addPrefix('xsd', XSD_NS)
        envelope.addPrefix('xsi', XSI_NS)
        body = Element('Body', ns=('soap', SOAP_NS))
        request = Element(method, ns=(None, VIM_NS))
        request.append(vim_util.new_element('_this', str(moid),
                                            type=mo_type))
        if spec is not None:
            if not isinstance(spec, (list, tuple)):
                spec = [spec]
            request.append(list(spec))
        body.append(request)
        envelope.append(body)
        return Document(envelope).plain().encode('utf-8')

    def call(self, mo_type, moid, method, spec=None):
        """Invokes method on the managed object (mo_type, moid).

        Returns the raw response body. Faults reported by the server are
        raised as VimFaultException, other non-success statuses as
        ServerError and network failures as TransportError.
        """
        message = self.serialize(mo_type, moid, method, spec)
        if LOG.isEnabledFor(logging.DEBUG):
            LOG.debug("Request to %s:\n%s", self._url,
                      mask_password(message.decode('utf-8')))
        request = transport.Request(self._url, message)
        request.headers = {
            'Content-Type': 'text/xml; charset=utf-8',
            'SOAPAction': SOAP_ACTION,
        }
        try:
            reply = self.client.send(request)
        except transport.TransportError as excep:
            body = excep.fp.read() if excep.fp is not None else b''
            if LOG.isEnabledFor(logging.DEBUG):
                LOG.debug("Response (%s):\n%s", excep.httpcode,
                          body.decode('utf-8', 'replace'))
            raise self._fault_or_error(excep.httpcode, body)
        except (urllib.error.URLError, http.client.HTTPException,
                socket.error) as excep:
            raise error_util.TransportError(
                "Request to %s failed: %s" % (self._url, excep))
        if reply is None:
            raise error_util.ServerError(http.client.NO_CONTENT, b'')
        if LOG.isEnabledFor(logging.DEBUG):
            LOG.debug("Response:\n%s",
                      reply.message.decode('utf-8', 'replace'))
        return reply.message

    def _fault_or_error(self, http_status, body):
        try:
            root = parse_xml(body)
        except error_util.ProtocolError:
            return error_util.ServerError(http_status, body)
        fault = _find_fault(root)
        if fault is None:
            return error_util.ServerError(http_status, body)
        return fault_exception(fault)

    def invoke(self, mo_type, moid, method, spec=None):
        """Calls method and returns the parsed <method>Response element."""
        return parse_response(self.call(mo_type, moid, method, spec),
                              method)

    def __repr__(self):
        return "VIM Object"

    def __str__(self):
        return "VIM Object"


def parse_xml(body):
    try:
        document = Parser().parse(string=body)
    except xml.sax.SAXException as excep:
        raise error_util.ProtocolError("Malformed XML in response: %s"
                                       % excep)
    except Exception as excep:
        # suds raises a bare Exception on mismatched tags
        if type(excep) is not Exception:
            raise
        raise error_util.ProtocolError("Malformed XML in response: %s"
                                       % excep)
    root = document.root() if document is not None else None
    if root is None:
        raise error_util.ProtocolError("Empty response")
    return root


def _find_fault(root):
    body = root.getChild('Body')
    if root.name != 'Envelope' or body is None:
        return None
    return body.getChild('Fault')


def fault_exception(fault):
    """VimFaultException for a soap:Fault element."""
    fault_string = fault.getChild('faultstring')
    message = str(fault_string.getText('')) if fault_string is not None \
        else 'Unknown fault'
    fault_list = []
    details = {}
    detail = fault.getChild('detail')
    if detail is not None:
        for child in detail.getChildren():
            name = vim_util.xsi_type(child) or child.name
            if name.endswith('Fault'):
                name = name[:-len('Fault')]
            fault_list.append(str(name))
            value = vim_util.to_value(child)
            if isinstance(value, dict):
                details.update(value)
    return error_util.VimFaultException(fault_list, message, details)


def parse_response(body, method):
    """The <method>Response element of a successful reply body."""
    root = parse_xml(body)
    if root.name != 'Envelope':
        raise error_util.ProtocolError("Response is not a SOAP envelope")
    soap_body = root.getChild('Body')
    if soap_body is None:
        raise error_util.ProtocolError("SOAP envelope without body")
    fault = soap_body.getChild('Fault')
    if fault is not None:
        raise fault_exception(fault)
    response = soap_body.getChild('%sResponse' % method)
    if response is None:
        raise error_util.ProtocolError("Invalid response for %s: %s"
                                       % (method, soap_body.plain()))
    return response
